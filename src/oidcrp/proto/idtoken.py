"""ID Token parsing and claim validation.

Processing runs as a pipeline of pure stages:

1. :func:`parse_id_token` -- split the compact serialisation into header,
   payload and signature, base64url-decode the first two and require JSON
   objects. Failures raise :class:`~oidcrp.exceptions.ParseError`.
2. :func:`validate_claims` -- check ``iss``, ``exp``, ``azp`` and ``aud``
   against the provider's trust parameters, then extract the ``sub``
   claim (the authenticated username). Failures raise
   :class:`~oidcrp.exceptions.ValidationError`.
3. :meth:`IDTokenValidator.validate` -- runs both stages.

.. warning::

   The signature segment is located but **not verified**. The header is
   only required to be a JSON object; its ``alg`` and ``kid`` are ignored.
   Trust in the token therefore rests on it having been received directly
   from the token endpoint over TLS (the code flow back channel).
"""

from __future__ import annotations

import logging
import time
from datetime import datetime, timezone
from typing import Any, Optional

from oidcrp.encoding import (
    b64url_decode,
    decode_json_object,
    get_number,
    get_optional_string,
    get_string,
)
from oidcrp.exceptions import ParseError, ValidationError
from oidcrp.models import (
    IDTokenClaims,
    MultipleAudience,
    ParsedIDToken,
    Provider,
    SingleAudience,
)

logger = logging.getLogger(__name__)

_PAYLOAD = "id_token payload"


def _reject(message: str) -> ValidationError:
    logger.error("id_token rejected: %s", message)
    return ValidationError(message)


def _require(getter: Any, payload: dict[str, Any], key: str) -> Any:
    try:
        return getter(payload, key, _PAYLOAD, ValidationError)
    except ValidationError as exc:
        logger.error("id_token rejected: %s", exc)
        raise


def _decode_segment(segment: str, what: str) -> dict[str, Any]:
    try:
        raw = b64url_decode(segment)
    except ParseError as exc:
        raise ParseError(f"Could not decode {what} from id_token: {exc}") from exc
    return decode_json_object(raw, f"{what} from id_token")


def parse_id_token(id_token: str) -> ParsedIDToken:
    """Split and decode a compact-serialised ID Token.

    Everything after the second ``.`` is treated as the signature segment.

    Raises:
        ParseError: If a separator is missing, a segment is not valid
            base64url, or the header or payload is not a JSON object.
    """
    first = id_token.find(".")
    if first < 0:
        raise ParseError('Could not find first "." in id_token')
    second = id_token.find(".", first + 1)
    if second < 0:
        raise ParseError('Could not find second "." in id_token')

    header = _decode_segment(id_token[:first], "header")
    payload = _decode_segment(id_token[first + 1:second], "payload")
    return ParsedIDToken(
        header=header,
        payload=payload,
        signature=id_token[second + 1:],
        raw=id_token,
    )


def issuer_matches(configured: str, received: str) -> bool:
    """Compare issuers, tolerating exactly one trailing ``/`` on either side.

    ``https://op.example.com`` and ``https://op.example.com/`` match; any
    other difference does not.
    """
    if configured == received:
        return True
    if len(configured) == len(received) + 1 and configured.endswith("/"):
        return configured[:-1] == received
    if len(received) == len(configured) + 1 and received.endswith("/"):
        return received[:-1] == configured
    return False


def _validate_audience(
    provider: Provider,
    payload: dict[str, Any],
    azp: Optional[str],
) -> SingleAudience | MultipleAudience:
    if "aud" not in payload:
        raise _reject('id_token payload did not contain an "aud" element')
    aud = payload["aud"]

    if isinstance(aud, str):
        if aud != provider.client_id:
            raise _reject(
                f"configured client_id ({provider.client_id}) did not match "
                f'the "aud" entry ({aud})'
            )
        return SingleAudience(value=aud)

    if isinstance(aud, list):
        if len(aud) > 1 and azp is None:
            logger.warning(
                '"aud" is an array with more than 1 element, but "azp" claim '
                "is not present"
            )
        values: list[str] = []
        for elem in aud:
            if not isinstance(elem, str):
                logger.warning(
                    'unhandled in-array JSON value type in "aud": %s',
                    type(elem).__name__,
                )
                continue
            values.append(elem)
        audience = MultipleAudience(values=values)
        if not audience.contains(provider.client_id):
            raise _reject(
                f"configured client_id ({provider.client_id}) could not be found "
                'in the "aud" array'
            )
        return audience

    raise _reject('"aud" is neither a string nor an array')


def extract_subject(payload: dict[str, Any]) -> str:
    """Return the ``sub`` claim, the authenticated username.

    Raises:
        ValidationError: If ``sub`` is missing or not a string.
    """
    return _require(get_string, payload, "sub")


def validate_claims(
    provider: Provider,
    payload: dict[str, Any],
    now: Optional[int | float] = None,
) -> IDTokenClaims:
    """Validate an ID Token payload against *provider*.

    The trust checks run first (``iss``, ``exp``, ``azp``, ``aud``); the
    ``sub`` claim is extracted only once they have all passed.

    Args:
        provider: Supplies the expected issuer and client_id.
        payload: The decoded payload object.
        now: Current time in seconds since the epoch. Defaults to the
            wall clock, truncated to whole seconds.

    Returns:
        The typed, validated claims.

    Raises:
        ValidationError: With the reason for the first failed check.
    """
    if now is None:
        now = int(time.time())

    iss = _require(get_string, payload, "iss")
    if not issuer_matches(provider.issuer, iss):
        raise _reject(
            f"configured issuer ({provider.issuer}) does not match received "
            f'"iss" value in id_token ({iss})'
        )

    exp = _require(get_number, payload, "exp")
    if now > exp:
        raise _reject(f"id_token expired (exp={exp}, now={now})")
    try:
        expires_at = datetime.fromtimestamp(exp, tz=timezone.utc)
    except (OverflowError, OSError, ValueError) as exc:
        raise _reject(f'"exp" value {exp} is out of range') from exc

    azp = _require(get_optional_string, payload, "azp")
    if azp is not None and azp != provider.client_id:
        raise _reject(
            f'"azp" claim ({azp}) is not equal to configured client_id '
            f"({provider.client_id})"
        )

    audience = _validate_audience(provider, payload, azp)

    return IDTokenClaims(
        issuer=iss,
        subject=extract_subject(payload),
        audience=audience,
        authorized_party=azp,
        expires_at=expires_at,
        payload=payload,
    )


class IDTokenValidator:
    """Parse an ID Token and validate its claims for one provider.

    Stateless; a single instance can serve any number of attempts.
    """

    def parse(self, id_token: str) -> ParsedIDToken:
        """Split and decode *id_token*. See :func:`parse_id_token`."""
        return parse_id_token(id_token)

    def validate(
        self,
        provider: Provider,
        id_token: str,
        now: Optional[int | float] = None,
    ) -> IDTokenClaims:
        """Parse *id_token*, validate its claims, and extract the subject.

        Args:
            provider: The provider the token was obtained from.
            id_token: The compact-serialised token from the token response.
            now: Override for the current time in epoch seconds.

        Returns:
            Validated :class:`~oidcrp.models.IDTokenClaims`.

        Raises:
            ParseError: If the token cannot be split or decoded.
            ValidationError: If a claim check fails or ``sub`` is missing.
        """
        if now is None:
            now = int(time.time())

        parsed = parse_id_token(id_token)
        logger.debug("id_token header: %s (signature not verified)", parsed.header)

        claims = validate_claims(provider, parsed.payload, now)
        logger.debug(
            'valid id_token for user "%s" (expires in %d seconds)',
            claims.subject, int(claims.expires_at.timestamp() - now),
        )
        return claims
