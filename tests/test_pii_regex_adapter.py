"""Tests for BrazilianPIIRegexAdapter."""

from tarja.app.adapters.pii_regex import DETECTION_PROFILES, BrazilianPIIRegexAdapter
from tarja.app.ports.pii import DetectionType, RiskLevel


def _types(detections):
    return sorted(d.type.value for d in detections)


class TestBrazilianPIIPatterns:
    """Test PII pattern matching."""

    def test_cpf_and_email_end_to_end(self):
        """The canonical sentence yields exactly a CPF and an e-mail."""
        adapter = BrazilianPIIRegexAdapter()
        text = "Meu CPF é 529.982.247-25 e email teste@exemplo.com"
        detections = adapter.analyze_text(text)

        assert len(detections) == 2
        by_type = {d.type: d for d in detections}

        cpf = by_type[DetectionType.CPF]
        assert cpf.text == "529.982.247-25"
        assert cpf.confidence == 95
        assert cpf.risk_level == RiskLevel.HIGH
        assert cpf.start_index == text.index("529.982.247-25")
        assert cpf.end_index == cpf.start_index + len("529.982.247-25")

        email = by_type[DetectionType.EMAIL]
        assert email.text == "teste@exemplo.com"
        assert email.confidence == 90
        assert email.risk_level == RiskLevel.MEDIUM
        assert text[email.start_index : email.end_index] == "teste@exemplo.com"

    def test_invalid_cpf_is_dropped(self):
        """Checksum failures are silently excluded."""
        adapter = BrazilianPIIRegexAdapter()
        assert adapter.analyze_text("CPF 111.111.111-11") == []

    def test_no_pii_detected(self):
        adapter = BrazilianPIIRegexAdapter()
        assert adapter.analyze_text("Documento sem nenhum dado sensível.") == []

    def test_detections_have_no_page(self):
        adapter = BrazilianPIIRegexAdapter()
        detections = adapter.analyze_text("email teste@exemplo.com")
        assert all(d.page_number is None and d.bounding_box is None for d in detections)

    def test_phone_detection(self):
        adapter = BrazilianPIIRegexAdapter(enabled=["PHONE"])
        text = "Ligue (11) 98765-4321 ou 3333-4444"
        detections = adapter.analyze_text(text)

        assert [d.text for d in detections] == ["(11) 98765-4321"]
        assert detections[0].confidence == 80

    def test_credit_card_with_separators(self):
        adapter = BrazilianPIIRegexAdapter(enabled=["CREDIT_CARD"])
        detections = adapter.analyze_text("Cartão 4532 0151 1283 0366 e 4532-0151-1283-0367")

        assert [d.text for d in detections] == ["4532 0151 1283 0366"]
        assert detections[0].risk_level == RiskLevel.HIGH

    def test_cep_is_reported_as_cep(self):
        adapter = BrazilianPIIRegexAdapter(enabled=["CEP"])
        detections = adapter.analyze_text("CEP 01310-100")

        assert len(detections) == 1
        assert detections[0].type == DetectionType.CEP
        assert detections[0].confidence == 70

    def test_address_minimum_length(self):
        """Short matches like 'Rua A, 1' are not addresses."""
        adapter = BrazilianPIIRegexAdapter(enabled=["ADDRESS"])
        assert adapter.analyze_text("Rua A, 1") == []

        text = "Mora na Rua das Flores, 123 no centro"
        detections = adapter.analyze_text(text)
        assert [d.text for d in detections] == ["Rua das Flores, 123"]

    def test_address_does_not_cross_lines(self):
        adapter = BrazilianPIIRegexAdapter(enabled=["ADDRESS"])
        assert adapter.analyze_text("Rua das Flores\nbloco, 12") == []

    def test_bank_agency_payload_length(self):
        adapter = BrazilianPIIRegexAdapter(enabled=["BANK_AGENCY"])

        assert [d.text for d in adapter.analyze_text("Agência: 1234-5")] == ["Agência: 1234-5"]
        assert adapter.analyze_text("Agência: 123") == []
        assert adapter.analyze_text("Agência: 1234567") == []

    def test_bank_account_payload_length(self):
        adapter = BrazilianPIIRegexAdapter(enabled=["BANK_ACCOUNT"])

        assert len(adapter.analyze_text("Conta: 12345-6")) == 1
        assert adapter.analyze_text("Conta: 12345678901") == []

    def test_labelled_pix_key(self):
        """A labelled key is detected and the span covers only the key."""
        adapter = BrazilianPIIRegexAdapter(enabled=["PIX"])
        text = "Chave PIX: teste@exemplo.com."
        detections = adapter.analyze_text(text)

        assert [d.text for d in detections] == ["teste@exemplo.com"]
        assert detections[0].start_index == text.index("teste@")

    def test_random_pix_key(self):
        adapter = BrazilianPIIRegexAdapter(enabled=["PIX"])
        detections = adapter.analyze_text("pix 123e4567e89b12d3a456426614174000 ok")

        assert [d.text for d in detections] == ["123e4567e89b12d3a456426614174000"]

    def test_labelled_random_pix_key_reported_once(self):
        adapter = BrazilianPIIRegexAdapter(enabled=["PIX"])
        detections = adapter.analyze_text("chave pix 123e4567e89b12d3a456426614174000")
        assert len(detections) == 1

    def test_entity_filtering(self):
        adapter = BrazilianPIIRegexAdapter()
        text = "Meu CPF é 529.982.247-25 e email teste@exemplo.com"

        detections = adapter.analyze_text(text, entities=["email"])
        assert _types(detections) == ["EMAIL"]

    def test_unknown_entities_are_ignored(self):
        adapter = BrazilianPIIRegexAdapter(enabled=["CPF", "SSN"])
        assert adapter.get_supported_entities() == ["CPF"]

    def test_detection_is_idempotent(self):
        adapter = BrazilianPIIRegexAdapter()
        text = (
            "CPF 529.982.247-25, RG 24.678.131-9, CNH 12345678900, título 123456780124, "
            "email teste@exemplo.com, cartão 4532015112830366, CEP 01310-100"
        )
        first = {(d.type, d.start_index, d.end_index) for d in adapter.analyze_text(text)}
        second = {(d.type, d.start_index, d.end_index) for d in adapter.analyze_text(text)}

        assert first == second
        assert len(first) >= 6


class TestAdapterContract:
    def test_supported_entities(self):
        adapter = BrazilianPIIRegexAdapter()
        assert set(adapter.get_supported_entities()) == {t.value for t in DetectionType}

    def test_requires_online(self):
        assert BrazilianPIIRegexAdapter().requires_online() is False

    def test_every_type_has_a_profile(self):
        assert set(DETECTION_PROFILES) == set(DetectionType)
        assert all(0 <= profile.confidence <= 100 for profile in DETECTION_PROFILES.values())
