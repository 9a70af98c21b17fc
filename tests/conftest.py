"""Pytest configuration and shared fixtures."""

from datetime import datetime, timedelta, timezone

import pytest
import structlog

from bcp_email_extractor.config import get_settings
from bcp_email_extractor.extraction.normalize import normalize_email_body

LIMA = timezone(timedelta(hours=-5))


@pytest.fixture(autouse=True)
def _reset_global_state():
    """Keep cached settings and logging configuration local to each test."""
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()
    structlog.reset_defaults()


@pytest.fixture
def mock_settings():
    """Provide mock settings for testing."""
    from bcp_email_extractor.config import Settings

    return Settings(log_level="DEBUG", debug=True, min_confidence=0.5)


@pytest.fixture
def received_at() -> datetime:
    return datetime(2025, 10, 6, 8, 0, tzinfo=LIMA)


@pytest.fixture
def minimal_transfer_body() -> str:
    """The smallest transfer notification the transfer parser accepts."""
    return (
        "Monto transferido: S/ 150.50\n"
        "Fecha y hora: 05/10/2025 14:30\n"
        "Cuenta destino: 1234\n"
        "Operacion: OP123"
    )


@pytest.fixture
def transfer_body() -> str:
    return """
    Hola Juan,
    Realizaste una transferencia a terceros.

    Monto transferido: S/ 1,250.00
    Fecha y hora: 05/10/2025 - 02:30 PM
    Cuenta de origen: Cuenta Digital ****5678
    Cuenta destino: 191-12345678-0-12
    Beneficiario: Maria Lopez
    Banco destino: BCP
    Canal: Banca Movil BCP
    Número de operación: 04807225

    Recuerda a través de nuestros canales oficiales nunca te pediremos tu clave.
    """


@pytest.fixture
def online_purchase_body() -> str:
    return """
    Realizaste una compra por internet con tu Tarjeta de Credito BCP.
    Monto de compra: US$ 25.99
    Fecha y hora: 12/09/2025 21:15
    Tarjeta terminada en: 4321
    Comercio: NETFLIX.COM
    Canal: Compra por internet
    Numero de operacion: 998877
    """


@pytest.fixture
def service_payment_body() -> str:
    return """
    Pago de servicio realizado
    Empresa: SEDAPAL
    Servicio: Agua
    Titular del servicio: Juan Perez
    Código de usuario: 12345678
    Monto pagado: S/ 89.90
    Fecha y hora: 01/10/2025 09:05
    Cuenta de origen: Cuenta de Ahorros ****1111
    Canal: Banca por Internet
    Numero de operacion: 55443322
    """


@pytest.fixture
def fee_commission_body() -> str:
    return """
    Se realizo un cargo en tu cuenta.
    Monto de comisión: S/ 5.00
    Fecha y hora: 30/09/2025 23:59
    Cuenta afectada: ****9876
    Motivo: Comision por mantenimiento
    Canal: Automatico
    Operacion: 77665544
    """


@pytest.fixture
def normalize():
    """Expose body normalization so parser tests read like the dispatcher."""
    return normalize_email_body
