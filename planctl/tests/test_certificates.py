import datetime
import io
import ipaddress
import os
import stat

import pytest
from cryptography import x509
from cryptography.x509.oid import NameOID

from planctl.errors import PKIError, PreconditionError
from planctl.modules.certificates import generate_certificates
from planctl.modules.pki import LocalPKI, parse_duration


def call_names(pki):
    return [c if isinstance(c, str) else c[0] for c in pki.calls]


def test_new_ca(tmp_path, plan, fake_pki):
    out = io.StringIO()
    generate_certificates(fake_pki, str(tmp_path / "keys"), plan, use_existing_ca=False, out=out)
    assert call_names(fake_pki) == [
        "generate_cluster_ca", "generate_proxy_client_ca", "generate_cluster_certificates",
    ]
    assert fake_pki.calls[-1] == ("generate_cluster_certificates", "new-ca", "proxy-ca")
    assert (tmp_path / "keys").is_dir()
    assert "Configuring Certificates" in out.getvalue()
    assert "✅" in out.getvalue()


def test_existing_ca(tmp_path, plan, fake_pki):
    generate_certificates(fake_pki, str(tmp_path), plan, use_existing_ca=True)
    assert call_names(fake_pki) == [
        "certificate_authority_exists", "get_cluster_ca",
        "generate_proxy_client_ca", "generate_cluster_certificates",
    ]
    assert fake_pki.calls[-1] == ("generate_cluster_certificates", "existing-ca", "proxy-ca")


def test_missing_existing_ca(tmp_path, plan, fake_pki):
    fake_pki.ca_exists = False
    with pytest.raises(PreconditionError, match="The Certificate Authority is required, but it was not found."):
        generate_certificates(fake_pki, str(tmp_path), plan, use_existing_ca=True)
    assert call_names(fake_pki) == ["certificate_authority_exists"]


@pytest.mark.parametrize("step", ["generate_cluster_ca", "generate_proxy_client_ca", "generate_cluster_certificates"])
def test_pki_failure_stops_the_workflow(tmp_path, plan, fake_pki, step):
    fake_pki.fail_on = step
    with pytest.raises(PKIError, match="disk on fire"):
        generate_certificates(fake_pki, str(tmp_path), plan, use_existing_ca=False)
    assert call_names(fake_pki)[-1] == step


def test_parse_duration():
    assert parse_duration("17520h") == datetime.timedelta(days=730)
    assert parse_duration("1h30m") == datetime.timedelta(minutes=90)
    with pytest.raises(ValueError):
        parse_duration("2y")


def load_cert(path):
    with open(path, "rb") as f:
        return x509.load_pem_x509_certificate(f.read())


def test_local_pki_writes_cluster_certificates(tmp_path, plan):
    plan.master.load_balanced_fqdn = "lb.example.com"
    certs_dir = tmp_path / "keys"
    pki = LocalPKI(str(certs_dir))
    assert not pki.certificate_authority_exists()

    generate_certificates(pki, str(certs_dir), plan, use_existing_ca=False)

    assert pki.certificate_authority_exists()
    for name in ["ca", "proxy-client-ca", "admin", "proxy-client", "etcd1", "master1", "worker1", "worker2", "storage1"]:
        assert (certs_dir / f"{name}.pem").exists()
        assert (certs_dir / f"{name}-key.pem").exists()
    assert stat.S_IMODE(os.stat(certs_dir / "ca-key.pem").st_mode) == 0o600

    ca = load_cert(certs_dir / "ca.pem")
    master = load_cert(certs_dir / "master1.pem")
    assert master.issuer == ca.subject
    sans = master.extensions.get_extension_for_class(x509.SubjectAlternativeName).value
    assert "lb.example.com" in sans.get_values_for_type(x509.DNSName)
    assert "kubernetes.default" in sans.get_values_for_type(x509.DNSName)
    ips = sans.get_values_for_type(x509.IPAddress)
    assert ipaddress.ip_address("10.0.0.2") in ips
    assert ipaddress.ip_address("192.168.0.2") in ips
    assert ipaddress.ip_address("172.20.0.1") in ips

    worker = load_cert(certs_dir / "worker1.pem")
    worker_names = worker.extensions.get_extension_for_class(x509.SubjectAlternativeName).value
    assert "kubernetes" not in worker_names.get_values_for_type(x509.DNSName)

    admin = load_cert(certs_dir / "admin.pem")
    org = admin.subject.get_attributes_for_oid(NameOID.ORGANIZATION_NAME)[0].value
    assert org == "system:masters"


def test_local_pki_reuses_ca_and_node_certificates(tmp_path, plan):
    certs_dir = tmp_path / "keys"
    pki = LocalPKI(str(certs_dir))
    generate_certificates(pki, str(certs_dir), plan, use_existing_ca=False)
    ca_before = (certs_dir / "ca.pem").read_bytes()
    worker_before = (certs_dir / "worker1.pem").read_bytes()

    generate_certificates(pki, str(certs_dir), plan, use_existing_ca=True)
    assert (certs_dir / "ca.pem").read_bytes() == ca_before
    assert (certs_dir / "worker1.pem").read_bytes() == worker_before


def test_local_pki_reissues_node_certificates_for_a_new_ca(tmp_path, plan):
    certs_dir = tmp_path / "keys"
    pki = LocalPKI(str(certs_dir))
    generate_certificates(pki, str(certs_dir), plan, use_existing_ca=False)
    worker_before = (certs_dir / "worker1.pem").read_bytes()

    generate_certificates(pki, str(certs_dir), plan, use_existing_ca=False)

    assert (certs_dir / "worker1.pem").read_bytes() != worker_before
    ca = load_cert(certs_dir / "ca.pem")
    for name in ["etcd1", "master1", "worker1", "worker2", "storage1", "admin"]:
        load_cert(certs_dir / f"{name}.pem").verify_directly_issued_by(ca)


def test_local_pki_bad_expiry(tmp_path, plan):
    plan.cluster.certificates.ca_expiry = "forever"
    pki = LocalPKI(str(tmp_path))
    with pytest.raises(PKIError, match="generating CA for the cluster"):
        generate_certificates(pki, str(tmp_path), plan, use_existing_ca=False)
