"""Certificate provisioning for the cluster.

The PKI does all the cryptographic work; this module only decides which
certificate authorities to use and in what order to call it.
"""
import logging
import os
from typing import Any, Optional, TextIO

from planctl.errors import PKIError, PreconditionError
from planctl.modules.plan.models import Plan
from planctl.utils import print_header, print_ok

logger = logging.getLogger("planctl.certificates")


class PKI:
    """Certificate authority operations used during provisioning."""

    def certificate_authority_exists(self) -> bool:
        raise NotImplementedError

    def get_cluster_ca(self) -> Any:
        raise NotImplementedError

    def generate_cluster_ca(self, plan: Plan) -> Any:
        raise NotImplementedError

    def generate_proxy_client_ca(self, plan: Plan) -> Any:
        raise NotImplementedError

    def generate_cluster_certificates(self, plan: Plan, cluster_ca: Any, proxy_client_ca: Any) -> None:
        raise NotImplementedError


def _pki_call(description: str, fn, *args):
    try:
        return fn(*args)
    except PKIError as e:
        raise PKIError(f"error {description}: {e}") from e
    except (OSError, ValueError) as e:
        raise PKIError(f"error {description}: {e}") from e


def generate_certificates(
    pki: PKI,
    certs_dir: str,
    plan: Plan,
    use_existing_ca: bool,
    out: Optional[TextIO] = None,
    generated_assets_dir: str = '',
) -> None:
    """Generate the certificate authorities and certificates for a plan.

    Args:
        pki: The PKI doing the work
        certs_dir: Directory the certificates are written to
        plan: The cluster plan; every node gets a certificate
        use_existing_ca: Reuse the cluster CA on disk instead of creating one
        out: Where progress is printed
        generated_assets_dir: Shown to the user when done

    Raises:
        PreconditionError: If use_existing_ca is set and there is no CA
        PKIError: If any PKI call fails. Files written before the failure are
            left in place.
    """
    try:
        os.makedirs(certs_dir, exist_ok=True)
    except OSError as e:
        raise PKIError(f"error creating directory {certs_dir} for storing TLS assets: {e}") from e

    if out is not None:
        print_header(out, "Configuring Certificates")

    if use_existing_ca:
        exists = _pki_call("checking if CA exists", pki.certificate_authority_exists)
        if not exists:
            raise PreconditionError("The Certificate Authority is required, but it was not found.")
        cluster_ca = _pki_call("reading CA certificate", pki.get_cluster_ca)
        logger.info("Using existing cluster certificate authority")
    else:
        cluster_ca = _pki_call("generating CA for the cluster", pki.generate_cluster_ca, plan)
        logger.info("Generated cluster certificate authority")

    proxy_client_ca = _pki_call("generating CA for the proxy client", pki.generate_proxy_client_ca, plan)

    _pki_call(
        "generating certificates for the cluster",
        pki.generate_cluster_certificates, plan, cluster_ca, proxy_client_ca,
    )

    if out is not None:
        print_ok(out, f"Cluster certificates can be found in the {generated_assets_dir or certs_dir!r} directory")
