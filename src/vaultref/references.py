"""
Detection, parsing and masking of secret references.

Two families are recognized, case-insensitively on their literal keywords.

HashiCorp Vault:

- Attribute form:
  ``@HashiCorp.Vault(VaultAddress=https://vault.example.com;SecretPath=secret/data/myapp;SecretKey=password)``
  with an optional ``;SecretVersion=<n>`` before the closing parenthesis
- URI form: ``hashicorp://vault.example.com[:8200]/secret/data/myapp#password``

Azure Key Vault:

- Secret URI form:
  ``@Microsoft.KeyVault(SecretUri=https://myvault.vault.azure.net/secrets/mysecret[/version])``
- Vault name form:
  ``@Microsoft.KeyVault(VaultName=myvault;SecretName=mysecret[;SecretVersion=version])``

The whole value must match one of the forms; anything else is not a reference.
"""

import logging
import re
from urllib.parse import urlsplit

from .errors import InvalidReferenceError
from .models import KeyVaultReference, SecretReference

logger = logging.getLogger(__name__)

# Values longer than this are never treated as references. Together with the
# linear patterns below this bounds match time well below one second.
MAX_REFERENCE_LENGTH = 4096

ATTRIBUTE_PATTERN = re.compile(
    r"@HashiCorp\.Vault\("
    r"VaultAddress=(?P<addr>[^;)]+);"
    r"SecretPath=(?P<path>[^;)]+);"
    r"SecretKey=(?P<key>[^;)]+)"
    r"(?:;SecretVersion=(?P<version>\d+))?"
    r"\)",
    re.IGNORECASE,
)

URI_PATTERN = re.compile(
    r"hashicorp://(?P<host>[^/#]+)/(?P<path>.+)#(?P<key>[^#]+)",
    re.IGNORECASE,
)

KEYVAULT_URI_PATTERN = re.compile(
    r"@Microsoft\.KeyVault\(SecretUri=(?P<uri>https://[^)]+)\)",
    re.IGNORECASE,
)

KEYVAULT_NAME_PATTERN = re.compile(
    r"@Microsoft\.KeyVault\("
    r"VaultName=(?P<vault>[^;)]+);"
    r"SecretName=(?P<secret>[^;)]+)"
    r"(?:;SecretVersion=(?P<version>[^;)]+))?"
    r"\)",
    re.IGNORECASE,
)

KEYVAULT_HOST_SUFFIX = "vault.azure.net"

EXPECTED_FORMATS = (
    "@HashiCorp.Vault(VaultAddress=https://vault.example.com;SecretPath=secret/data/myapp;"
    "SecretKey=password), hashicorp://vault.example.com/secret/data/myapp#password, "
    "@Microsoft.KeyVault(SecretUri=https://myvault.vault.azure.net/secrets/mysecret) or "
    "@Microsoft.KeyVault(VaultName=myvault;SecretName=mysecret)"
)

EXPECTED_SECRET_URI_FORMAT = "https://{vault}.vault.azure.net/secrets/{secret-name}[/{version}]"

# Unanchored forms used to scrub references out of free text (error messages,
# tracebacks). Each keeps only the part that mask_reference keeps.
_SCRUB_RULES = (
    (
        re.compile(r"@HashiCorp\.Vault\(VaultAddress=(?P<addr>[^;)\s]+)[^)]*\)", re.IGNORECASE),
        r"@HashiCorp.Vault(VaultAddress=\g<addr>;SecretPath=***;SecretKey=***)",
    ),
    (
        re.compile(r"hashicorp://(?P<host>[^/#\s'\"]+)/[^\s'\"]*", re.IGNORECASE),
        r"hashicorp://\g<host>/***#***",
    ),
    (
        re.compile(
            r"@Microsoft\.KeyVault\(SecretUri=(?P<base>https://[^/)\s]+)[^)]*\)", re.IGNORECASE
        ),
        r"@Microsoft.KeyVault(SecretUri=\g<base>/secrets/***)",
    ),
    (
        re.compile(r"@Microsoft\.KeyVault\(VaultName=(?P<vault>[^;)\s]+)[^)]*\)", re.IGNORECASE),
        r"@Microsoft.KeyVault(VaultName=\g<vault>;SecretName=***)",
    ),
)

_PATTERNS = (
    ("attribute", ATTRIBUTE_PATTERN),
    ("uri", URI_PATTERN),
    ("keyvault_uri", KEYVAULT_URI_PATTERN),
    ("keyvault_name", KEYVAULT_NAME_PATTERN),
)


def _match(value: str | None) -> tuple[str, re.Match[str]] | None:
    if value is None:
        return None
    candidate = value.strip()
    if not candidate or len(candidate) > MAX_REFERENCE_LENGTH:
        return None

    for form, pattern in _PATTERNS:
        match = pattern.fullmatch(candidate)
        if match:
            return form, match

    return None


def is_reference(value: str | None) -> bool:
    """Check if a value is a HashiCorp Vault or Azure Key Vault reference."""
    return _match(value) is not None


def parse_secret_uri(secret_uri: str) -> KeyVaultReference:
    """Parse an Azure Key Vault secret URI.

    Example:
        >>> ref = parse_secret_uri("https://myvault.vault.azure.net/secrets/db/abc123")
        >>> ref.vault_uri, ref.secret_name, ref.version
        ('https://myvault.vault.azure.net', 'db', 'abc123')

    Raises:
        InvalidReferenceError: If the URI has no host or its path is not
            ``secrets/<name>[/<version>]``
    """
    try:
        parts = urlsplit(secret_uri.strip())
        host = parts.hostname
    except ValueError:
        host = None

    segments = [segment for segment in parts.path.split("/") if segment] if host else []
    if len(segments) < 2 or segments[0].lower() != "secrets":
        raise InvalidReferenceError(
            f"Invalid Key Vault secret URI format: {mask_secret_uri(secret_uri)}. "
            f"Expected format: {EXPECTED_SECRET_URI_FORMAT}"
        )

    return KeyVaultReference(
        vault_uri=f"{parts.scheme}://{host}",
        secret_name=segments[1],
        version=segments[2] if len(segments) > 2 else None,
    )


def _build(form: str, match: re.Match[str]) -> SecretReference | KeyVaultReference:
    if form == "attribute":
        version = match.group("version")
        return SecretReference(
            store_address=match.group("addr"),
            secret_path=match.group("path"),
            secret_key=match.group("key"),
            version=int(version) if version else None,
        )

    if form == "uri":
        return SecretReference(
            store_address=f"https://{match.group('host')}",
            secret_path=match.group("path"),
            secret_key=match.group("key"),
        )

    if form == "keyvault_uri":
        return parse_secret_uri(match.group("uri"))

    return KeyVaultReference(
        vault_uri=f"https://{match.group('vault')}.{KEYVAULT_HOST_SUFFIX}",
        secret_name=match.group("secret"),
        version=match.group("version"),
    )


def parse_reference(value: str) -> SecretReference | KeyVaultReference:
    """Parse a reference of either family.

    A ``SecretUri`` reference is recognized by :func:`is_reference` as soon as
    it holds an ``https://`` URI, but it only parses when that URI has the
    ``/secrets/<name>`` shape.

    Raises:
        InvalidReferenceError: If the value matches no syntax, or holds a
            malformed Key Vault secret URI
    """
    matched = _match(value)
    if matched is None:
        raise InvalidReferenceError(
            f"Invalid secret reference format: {mask_reference(value)}. "
            f"Expected format: {EXPECTED_FORMATS}"
        )
    return _build(*matched)


def try_parse(value: str | None) -> SecretReference | KeyVaultReference | None:
    """Parse a reference, returning None if the value is not a valid one.

    Example:
        >>> ref = try_parse("hashicorp://vault.example.com:8200/secret/data/app#pw")
        >>> ref.store_address, ref.secret_path, ref.secret_key
        ('https://vault.example.com:8200', 'secret/data/app', 'pw')
    """
    if _match(value) is None:
        return None
    try:
        return parse_reference(value)  # type: ignore[arg-type]
    except InvalidReferenceError:
        return None


def extract_secret_uri(value: str | None) -> str | None:
    """Return the Azure Key Vault secret URI a reference points at.

    Vault name references are expanded to
    ``https://<vault>.vault.azure.net/secrets/<name>[/<version>]``. Anything
    that is not a Key Vault reference gives None.
    """
    matched = _match(value)
    if matched is None:
        return None

    form, match = matched
    if form == "keyvault_uri":
        return match.group("uri")
    if form == "keyvault_name":
        return _build(form, match).secret_uri  # type: ignore[union-attr]
    return None


def mask_secret_uri(secret_uri: str | None) -> str:
    """Mask an Azure Key Vault secret URI down to its vault.

    Example:
        >>> mask_secret_uri("https://myvault.vault.azure.net/secrets/db/abc123")
        'https://myvault.vault.azure.net/secrets/***'
    """
    if not secret_uri:
        return "***"
    try:
        parts = urlsplit(secret_uri.strip())
        host = parts.hostname
    except ValueError:
        return "***"
    if not parts.scheme or not host:
        return "***"
    return f"{parts.scheme}://{host}/secrets/***"


def mask_reference(value: str | None) -> str:
    """Render a reference for logs with its path and key redacted.

    Only the store address (or host, or vault) stays visible; anything that
    is not a reference is rendered as ``***``.

    Example:
        >>> mask_reference("hashicorp://host/secret/data/app#pw")
        'hashicorp://host/***#***'
    """
    matched = _match(value)
    if matched is None:
        return "***"

    form, match = matched
    if form == "attribute":
        return f"@HashiCorp.Vault(VaultAddress={match.group('addr')};SecretPath=***;SecretKey=***)"
    if form == "uri":
        return f"hashicorp://{match.group('host')}/***#***"
    if form == "keyvault_uri":
        return f"@Microsoft.KeyVault(SecretUri={mask_secret_uri(match.group('uri'))})"
    return f"@Microsoft.KeyVault(VaultName={match.group('vault')};SecretName=***)"


def mask_path(path: str) -> str:
    """Mask everything after the mount segment of a secret path."""
    parts = path.split("/")
    if len(parts) > 1:
        return f"{parts[0]}/***"
    return "***"


def scrub_references(text: str) -> str:
    """Mask every reference embedded anywhere in ``text``.

    Used on free text such as error messages, where a reference may appear
    quoted inside a larger message (e.g. a YAML parser error).
    """
    for pattern, replacement in _SCRUB_RULES:
        text = pattern.sub(replacement, text)
    return text
