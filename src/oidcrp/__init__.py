"""oidcrp -- OpenID Connect relying-party engine for the authorization code flow.

This package builds the authorization request, recognises the provider's
callback, exchanges the authorization code for tokens, validates the ID
Token's claims, optionally fetches UserInfo claims, and discovers issuers
from account identifiers via WebFinger.

The ID Token signature is NOT verified: only its claims are. Deployments that
need signature verification must add it on top of
:class:`~oidcrp.proto.idtoken.IDTokenValidator`.

Typical use from a hosting web application::

    rp = RelyingParty(config)
    attempt = rp.begin(provider, original_url="/app")
    # redirect the browser to attempt.authorization_url, keep attempt.context
    result = attempt.complete(callback_url)
    result.username

Modules:
    flow: Attempt orchestration and its state machine.
    proto: The protocol components (authorization, token, idtoken,
        userinfo, discovery).
    client: The HTTP collaborator.
    models: Pydantic models shared across the package.
    config: XDG-aware configuration and provider profiles.
    exceptions: Exception hierarchy with exit-code mapping.
    app: Typer command-line front end.
"""

__version__ = "0.1.0"
