"""Token commands -- look inside ID Tokens.

``oidcrp token inspect`` splits and decodes an ID Token. The signature is
never verified; with ``--validate`` the claims are checked against the active
provider exactly as during login (issuer, expiry, authorized party,
audience, subject)::

    oidcrp token inspect eyJhbGciOi...
    oidcrp -p example token inspect eyJhbGciOi... --validate
"""

from __future__ import annotations

import typer

from oidcrp.exceptions import OidcrpError
from oidcrp.output import format_response, success, warning


token_app = typer.Typer(no_args_is_help=True)


@token_app.command("inspect")
def token_inspect(
    ctx: typer.Context,
    id_token: str = typer.Argument(help="Compact-serialised ID Token."),
    validate: bool = typer.Option(
        False, "--validate", help="Validate the claims against the active provider."
    ),
) -> None:
    """Decode an ID Token's header and payload.

    Raises:
        typer.Exit: With code 7 for undecodable tokens, 3 for failed
            validation, or the failing error's exit code.
    """
    from oidcrp.commands._common import active_provider, fail
    from oidcrp.proto.idtoken import IDTokenValidator

    validator = IDTokenValidator()
    try:
        parsed = validator.parse(id_token)
        result: dict = {
            "header": parsed.header,
            "payload": parsed.payload,
            "signature_verified": False,
        }
        if validate:
            _, provider = active_provider(ctx, with_secret=False)
            claims = validator.validate(provider, id_token)
            result["validation"] = {
                "provider": provider.name,
                "subject": claims.subject,
                "expires_at": claims.expires_at.isoformat(),
                "audience": claims.audience.model_dump(),
            }
    except OidcrpError as exc:
        fail(exc)

    if validate:
        success(f"Claims are valid for user {result['validation']['subject']}")
    warning("The ID Token signature is not verified.")
    format_response(result)
