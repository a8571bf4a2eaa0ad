"""Built-in CLI sub-commands for oidcrp.

This package groups the Typer sub-command modules that form the CLI's
command tree:

* :mod:`~oidcrp.commands.discover` -- WebFinger issuer discovery.
* :mod:`~oidcrp.commands.provider` -- add, list, show and remove providers.
* :mod:`~oidcrp.commands.authorize` -- print an authorization request URL.
* :mod:`~oidcrp.commands.login` -- the full code flow via a loopback server.
* :mod:`~oidcrp.commands.token` -- decode and validate ID Tokens.
* :mod:`~oidcrp.commands.userinfo` -- fetch UserInfo claims.
* :mod:`~oidcrp.commands.config` -- view and modify global settings.

Each module either exports a :class:`typer.Typer` sub-application (for
multi-command groups like ``provider`` and ``config``) or a plain callback
function registered directly on the root app (for single commands like
``login``).
"""
