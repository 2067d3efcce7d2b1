"""Local certificate authority backed by the cryptography package."""
import datetime
import ipaddress
import logging
import os
import re
from dataclasses import dataclass
from typing import List, Optional

from cryptography import x509
from cryptography.exceptions import InvalidSignature
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import rsa
from cryptography.x509.oid import ExtendedKeyUsageOID, NameOID

from planctl.errors import PKIError
from planctl.modules.certificates import PKI
from planctl.modules.plan.models import Node, Plan

logger = logging.getLogger("planctl.pki")

CLUSTER_CA_NAME = "ca"
PROXY_CLIENT_CA_NAME = "proxy-client-ca"
ADMIN_USER = "admin"
PROXY_CLIENT_USER = "proxy-client"
KEY_SIZE = 2048


@dataclass
class CA:
    """A certificate authority loaded in memory."""
    cert: x509.Certificate
    key: rsa.RSAPrivateKey
    cert_path: str
    key_path: str


def parse_duration(value: str) -> datetime.timedelta:
    """Parse durations such as '17520h' or '1h30m'.

    Raises:
        ValueError: If the value is not a duration
    """
    parts = re.findall(r'(\d+)([hms])', value or '')
    if not parts or ''.join(n + u for n, u in parts) != value:
        raise ValueError(f"invalid duration {value!r}")
    seconds = 0
    for number, unit in parts:
        seconds += int(number) * {'h': 3600, 'm': 60, 's': 1}[unit]
    return datetime.timedelta(seconds=seconds)


def _name(common_name: str, organization: Optional[str] = None) -> x509.Name:
    attributes = [x509.NameAttribute(NameOID.COMMON_NAME, common_name)]
    if organization:
        attributes.append(x509.NameAttribute(NameOID.ORGANIZATION_NAME, organization))
    return x509.Name(attributes)


def _first_service_ip(plan: Plan) -> str:
    network = ipaddress.ip_network(plan.cluster.networking.service_cidr_block, strict=False)
    return str(network.network_address + 1)


class LocalPKI(PKI):
    """Generates the cluster PKI as PEM files in a local directory."""

    def __init__(self, generated_certs_directory: str):
        self.generated_certs_directory = generated_certs_directory

    def _path(self, name: str) -> str:
        return os.path.join(self.generated_certs_directory, f"{name}.pem")

    def _key_path(self, name: str) -> str:
        return os.path.join(self.generated_certs_directory, f"{name}-key.pem")

    def _write(self, name: str, cert: x509.Certificate, key: rsa.RSAPrivateKey) -> None:
        os.makedirs(self.generated_certs_directory, exist_ok=True)
        with open(self._path(name), 'wb') as f:
            f.write(cert.public_bytes(serialization.Encoding.PEM))
        key_path = self._key_path(name)
        with open(key_path, 'wb') as f:
            f.write(key.private_bytes(
                serialization.Encoding.PEM,
                serialization.PrivateFormat.TraditionalOpenSSL,
                serialization.NoEncryption(),
            ))
        os.chmod(key_path, 0o600)
        logger.debug(f"Wrote {self._path(name)}")

    def _load(self, name: str) -> CA:
        with open(self._path(name), 'rb') as f:
            cert = x509.load_pem_x509_certificate(f.read())
        with open(self._key_path(name), 'rb') as f:
            key = serialization.load_pem_private_key(f.read(), password=None)
        return CA(cert=cert, key=key, cert_path=self._path(name), key_path=self._key_path(name))

    def _generate_ca(self, name: str, common_name: str, plan: Plan) -> CA:
        validity = parse_duration(plan.cluster.certificates.ca_expiry)
        key = rsa.generate_private_key(public_exponent=65537, key_size=KEY_SIZE)
        subject = _name(common_name, plan.cluster.name)
        now = datetime.datetime.now(datetime.timezone.utc)
        cert = (
            x509.CertificateBuilder()
            .subject_name(subject)
            .issuer_name(subject)
            .public_key(key.public_key())
            .serial_number(x509.random_serial_number())
            .not_valid_before(now - datetime.timedelta(minutes=5))
            .not_valid_after(now + validity)
            .add_extension(x509.BasicConstraints(ca=True, path_length=None), critical=True)
            .add_extension(x509.KeyUsage(
                digital_signature=True, content_commitment=False, key_encipherment=False,
                data_encipherment=False, key_agreement=False, key_cert_sign=True,
                crl_sign=True, encipher_only=False, decipher_only=False,
            ), critical=True)
            .sign(key, hashes.SHA256())
        )
        self._write(name, cert, key)
        return CA(cert=cert, key=key, cert_path=self._path(name), key_path=self._key_path(name))

    def _sign(
        self,
        ca: CA,
        name: str,
        common_name: str,
        validity: datetime.timedelta,
        organization: Optional[str] = None,
        dns_names: Optional[List[str]] = None,
        ips: Optional[List[str]] = None,
    ) -> None:
        key = rsa.generate_private_key(public_exponent=65537, key_size=KEY_SIZE)
        now = datetime.datetime.now(datetime.timezone.utc)
        builder = (
            x509.CertificateBuilder()
            .subject_name(_name(common_name, organization))
            .issuer_name(ca.cert.subject)
            .public_key(key.public_key())
            .serial_number(x509.random_serial_number())
            .not_valid_before(now - datetime.timedelta(minutes=5))
            .not_valid_after(now + validity)
            .add_extension(x509.BasicConstraints(ca=False, path_length=None), critical=True)
            .add_extension(x509.KeyUsage(
                digital_signature=True, content_commitment=False, key_encipherment=True,
                data_encipherment=False, key_agreement=False, key_cert_sign=False,
                crl_sign=False, encipher_only=False, decipher_only=False,
            ), critical=True)
            .add_extension(x509.ExtendedKeyUsage([
                ExtendedKeyUsageOID.SERVER_AUTH, ExtendedKeyUsageOID.CLIENT_AUTH,
            ]), critical=False)
        )
        sans = [x509.DNSName(d) for d in dict.fromkeys(dns_names or []) if d]
        sans += [x509.IPAddress(ipaddress.ip_address(ip)) for ip in dict.fromkeys(ips or []) if ip]
        if sans:
            builder = builder.add_extension(x509.SubjectAlternativeName(sans), critical=False)
        cert = builder.sign(ca.key, hashes.SHA256())
        self._write(name, cert, key)

    def certificate_authority_exists(self) -> bool:
        return os.path.exists(self._path(CLUSTER_CA_NAME)) and os.path.exists(self._key_path(CLUSTER_CA_NAME))

    def get_cluster_ca(self) -> CA:
        try:
            return self._load(CLUSTER_CA_NAME)
        except (OSError, ValueError) as e:
            raise PKIError(f"error reading cluster CA from {self.generated_certs_directory}: {e}") from e

    def generate_cluster_ca(self, plan: Plan) -> CA:
        return self._generate_ca(CLUSTER_CA_NAME, plan.cluster.name, plan)

    def generate_proxy_client_ca(self, plan: Plan) -> CA:
        return self._generate_ca(PROXY_CLIENT_CA_NAME, "proxyClientCA", plan)

    def node_certificate_exists(self, node: Node) -> bool:
        return os.path.exists(self._path(node.host)) and os.path.exists(self._key_path(node.host))

    def _issued_by(self, name: str, ca: CA) -> bool:
        try:
            with open(self._path(name), 'rb') as f:
                cert = x509.load_pem_x509_certificate(f.read())
            cert.verify_directly_issued_by(ca.cert)
        except (OSError, ValueError, TypeError, InvalidSignature):
            return False
        return True

    def generate_cluster_certificates(self, plan: Plan, cluster_ca: CA, proxy_client_ca: CA) -> None:
        validity = parse_duration(plan.cluster.certificates.expiry)
        masters = {n.host for n in plan.master.nodes}
        for node in plan.unique_nodes():
            if self.node_certificate_exists(node):
                if self._issued_by(node.host, cluster_ca):
                    logger.info(f"Found certificate for node {node.host}, reusing it")
                    continue
                logger.info(f"Certificate for node {node.host} was not signed by the current CA, regenerating it")
            dns_names = [node.host]
            ips = [node.ip, node.internal_ip]
            if node.host in masters:
                dns_names += [
                    plan.master.load_balanced_fqdn,
                    plan.master.load_balanced_short_name,
                    "kubernetes",
                    "kubernetes.default",
                    "kubernetes.default.svc",
                    "kubernetes.default.svc.cluster.local",
                ]
                ips.append(_first_service_ip(plan))
            ips = [ip for ip in ips if ip and _is_ip(ip)]
            self._sign(cluster_ca, node.host, node.host, validity, dns_names=dns_names, ips=ips)
            logger.info(f"Generated certificate for node {node.host}")

        self._sign(cluster_ca, ADMIN_USER, ADMIN_USER, validity, organization="system:masters")
        self._sign(proxy_client_ca, PROXY_CLIENT_USER, "aggregator", validity)


def _is_ip(value: str) -> bool:
    try:
        ipaddress.ip_address(value)
        return True
    except ValueError:
        return False
