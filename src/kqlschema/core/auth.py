"""Authentication helpers for Kusto clusters.

This module turns a `ClusterConnection` into the connection string builder
that azure-kusto-data expects, and builds default connections from raw
Kusto connection strings or environment variables. Data source URLs are
sanitized on the way in (query strings and trailing slashes removed) so
that equal clusters always produce equal cache keys.
"""

from __future__ import annotations

import os
from pathlib import Path

from azure.kusto.data import KustoConnectionStringBuilder

from kqlschema.core.connection import AuthMethod, ClusterConnection
from kqlschema.core.errors import AuthError

ENV_PREFIX = "KQLSCHEMA"

# Kusto connection string keywords (lowercased, spaces removed) -> field.
_KEYWORDS = {
    "datasource": "data_source",
    "addr": "data_source",
    "address": "data_source",
    "server": "data_source",
    "networkaddress": "data_source",
    "initialcatalog": "initial_catalog",
    "database": "initial_catalog",
    "applicationclientid": "application_client_id",
    "appclientid": "application_client_id",
    "applicationkey": "application_key",
    "appkey": "application_key",
    "applicationcertificatethumbprint": "application_certificate_thumbprint",
    "appcert": "application_certificate_thumbprint",
    "applicationcertificateprivatekey": "application_certificate",
    "aadfederatedsecurity": "federated_security",
    "federatedsecurity": "federated_security",
    "fed": "federated_security",
    "authorityid": "authority_id",
    "tenantid": "authority_id",
    "usertoken": "user_token",
    "usrtoken": "user_token",
}

_TRUE_VALUES = {"true", "yes", "1"}


def _sanitize_data_source(data_source: str | None) -> str | None:
    """
    Normalize a cluster URL.

    - Removes query strings (e.g. '?tenant=...')
    - Removes trailing slashes
    """
    if not data_source:
        return data_source
    data_source = data_source.strip().split("?", 1)[0]
    return data_source.rstrip("/")


def _require(value: str | None, what: str, method: AuthMethod) -> str:
    if not value:
        raise AuthError(f"Authentication '{method.value}' requires {what}.")
    return value


def build_connection_string_builder(
    connection: ClusterConnection,
) -> KustoConnectionStringBuilder:
    """
    Create a KustoConnectionStringBuilder for a cluster connection.

    Raises:
        AuthError: if the selected authentication method is missing any of
            the settings it needs.
    """
    target = f"Data Source={connection.data_source}"
    if connection.initial_catalog:
        target += f";Initial Catalog={connection.initial_catalog}"

    method = connection.auth
    if method is AuthMethod.AZ_CLI:
        return KustoConnectionStringBuilder.with_az_cli_authentication(target)
    if method is AuthMethod.APP_KEY:
        return KustoConnectionStringBuilder.with_aad_application_key_authentication(
            target,
            _require(connection.application_client_id, "an application client id", method),
            _require(connection.application_key, "an application key", method),
            _require(connection.authority_id, "an authority (tenant) id", method),
        )
    if method is AuthMethod.APP_CERTIFICATE:
        return KustoConnectionStringBuilder.with_aad_application_certificate_authentication(
            target,
            _require(connection.application_client_id, "an application client id", method),
            _require(connection.application_certificate, "a PEM certificate", method),
            _require(
                connection.application_certificate_thumbprint,
                "a certificate thumbprint",
                method,
            ),
            _require(connection.authority_id, "an authority (tenant) id", method),
        )
    if method is AuthMethod.MANAGED_IDENTITY:
        return KustoConnectionStringBuilder.with_aad_managed_service_identity_authentication(
            target, client_id=connection.managed_identity_client_id
        )
    if method is AuthMethod.DEVICE_CODE:
        return KustoConnectionStringBuilder.with_aad_device_authentication(
            target, authority_id=connection.authority_id or "organizations"
        )
    if method is AuthMethod.USER_TOKEN:
        return KustoConnectionStringBuilder.with_aad_user_token_authentication(
            target, _require(connection.user_token, "a user token", method)
        )
    raise AuthError(f"Unsupported authentication method: {method!r}")


def parse_connection_string(text: str) -> ClusterConnection:
    """
    Parse a Kusto connection string into a ClusterConnection.

    Accepts either a bare cluster URL or `key=value;` pairs such as
    `Data Source=https://help.kusto.windows.net;Initial Catalog=Samples`.
    The authentication method is inferred from the credentials present;
    without any, the Azure CLI login is used. Certificate authentication
    reads the PEM text from `Application Certificate PrivateKey`.

    Raises:
        ValueError: if the string has no data source, disables AAD federated
            security, or carries only half of a certificate credential.
    """
    text = (text or "").strip()
    if not text:
        raise ValueError("Connection string is empty.")

    if "=" not in text:
        return ClusterConnection(data_source=_sanitize_data_source(text))

    values: dict[str, str] = {}
    for part in text.split(";"):
        if "=" not in part:
            continue
        key, value = part.split("=", 1)
        name = _KEYWORDS.get(key.strip().lower().replace(" ", ""))
        if name:
            values[name] = value.strip()

    data_source = _sanitize_data_source(values.pop("data_source", None))
    if not data_source:
        raise ValueError("Connection string has no Data Source.")

    federated = values.pop("federated_security", "true").lower()
    if federated not in _TRUE_VALUES:
        raise ValueError("Only AAD Federated Security connection strings are supported.")

    if values.get("user_token"):
        auth = AuthMethod.USER_TOKEN
    elif values.get("application_key"):
        auth = AuthMethod.APP_KEY
    elif values.get("application_certificate_thumbprint") or values.get("application_certificate"):
        auth = AuthMethod.APP_CERTIFICATE
        thumbprint = values.get("application_certificate_thumbprint")
        if not (thumbprint and values.get("application_certificate")):
            raise ValueError(
                "Certificate authentication needs both Application Certificate Thumbprint "
                "and Application Certificate PrivateKey."
            )
    else:
        auth = AuthMethod.AZ_CLI

    return ClusterConnection(data_source=data_source, auth=auth, **values)


def _env(name: str) -> str | None:
    value = os.getenv(f"{ENV_PREFIX}_{name}", "").strip()
    return value or None


def connection_from_env(
    cluster: str | None = None,
    auth: str | None = None,
) -> ClusterConnection:
    """
    Build the default connection from KQLSCHEMA_* environment variables.

    Explicit arguments take precedence over the environment.

    Raises:
        AuthError: if no cluster is configured, the auth method is unknown
            or a certificate file cannot be read.
    """
    data_source = _sanitize_data_source(cluster or _env("CLUSTER"))
    if not data_source:
        raise AuthError(
            f"No cluster configured. Pass --cluster or set {ENV_PREFIX}_CLUSTER."
        )
    if "://" not in data_source:
        data_source = f"https://{data_source}"

    raw_method = (auth or _env("AUTH") or AuthMethod.AZ_CLI.value).lower()
    try:
        method = AuthMethod(raw_method)
    except ValueError as exc:
        allowed = ", ".join(m.value for m in AuthMethod)
        raise AuthError(
            f"Unknown authentication method '{raw_method}' (expected one of: {allowed})."
        ) from exc

    certificate = None
    certificate_path = _env("CERTIFICATE_PATH")
    if certificate_path:
        try:
            certificate = Path(certificate_path).read_text()
        except OSError as exc:
            raise AuthError(f"Cannot read certificate '{certificate_path}': {exc}") from exc

    client_id = _env("CLIENT_ID")
    return ClusterConnection(
        data_source=data_source,
        initial_catalog=_env("DATABASE"),
        auth=method,
        application_client_id=client_id,
        application_key=_env("CLIENT_SECRET"),
        application_certificate=certificate,
        application_certificate_thumbprint=_env("CERTIFICATE_THUMBPRINT"),
        authority_id=_env("TENANT_ID"),
        managed_identity_client_id=client_id if method is AuthMethod.MANAGED_IDENTITY else None,
        user_token=_env("USER_TOKEN"),
    )
