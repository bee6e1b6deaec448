import unittest
from decimal import Decimal

from dto import Annex, Competencia, DASInput
from errors import (
    INVALID_FACTOR_R,
    INVALID_MEI_ACTIVITY,
    INVALID_REQUEST,
    INVALID_REVENUE,
    INVALID_YEAR,
    MEI_REVENUE_EXCEEDS_LIMIT,
    REVENUE_EXCEEDS_LIMIT,
    UNKNOWN_ANNEX,
    DomainLimitError,
    FiscalLookupError,
    ValidationError,
)
from input_utils import (
    parse_anexo,
    validar_ano,
    validar_entrada_das,
    validar_entrada_irpj,
    validar_entrada_mei,
    validar_fator_r,
    validar_receita,
)

LIMITE_SIMPLES = Decimal("4800000.00")


class ValidacaoEntradaTests(unittest.TestCase):
    def test_receita_nao_positiva_rejeitada(self) -> None:
        for valor in (0, -1, Decimal("-0.01")):
            with self.subTest(valor=valor):
                with self.assertRaises(ValidationError) as ctx:
                    validar_receita(valor)
                self.assertEqual(ctx.exception.code, INVALID_REVENUE)

    def test_receita_nao_numerica_ou_infinita(self) -> None:
        for valor in ("1000", None, True, float("nan"), float("inf"), Decimal("Infinity")):
            with self.subTest(valor=valor):
                with self.assertRaises(ValidationError):
                    validar_receita(valor)

    def test_receita_acima_do_limite(self) -> None:
        with self.assertRaises(DomainLimitError) as ctx:
            validar_receita(Decimal("4800000.01"), LIMITE_SIMPLES)
        self.assertEqual(ctx.exception.code, REVENUE_EXCEEDS_LIMIT)

    def test_receita_igual_ao_limite_aceita(self) -> None:
        self.assertEqual(validar_receita(4_800_000, LIMITE_SIMPLES), Decimal("4800000"))

    def test_float_convertido_sem_ruido_binario(self) -> None:
        self.assertEqual(validar_receita(0.1), Decimal("0.1"))

    def test_parse_anexo(self) -> None:
        self.assertIs(parse_anexo("iii"), Annex.III)
        self.assertIs(parse_anexo(" V "), Annex.V)
        for valor in ("VI", "", 3, None):
            with self.subTest(valor=valor):
                with self.assertRaises(FiscalLookupError) as ctx:
                    parse_anexo(valor)
                self.assertEqual(ctx.exception.code, UNKNOWN_ANNEX)

    def test_fator_r(self) -> None:
        self.assertIsNone(validar_fator_r(None))
        self.assertEqual(validar_fator_r(0.2), Decimal("0.2"))
        with self.assertRaises(ValidationError) as ctx:
            validar_fator_r(-0.1)
        self.assertEqual(ctx.exception.code, INVALID_FACTOR_R)

    def test_entrada_das_descarta_fator_r_valido_fora_dos_anexos_de_servico(self) -> None:
        inp = validar_entrada_das(
            {"grossRevenue": 100000, "annex": "I", "competence": "2024-03", "factorR": 0.1},
            LIMITE_SIMPLES,
        )
        self.assertIsNone(inp.fator_r)
        self.assertEqual(inp.competencia, Competencia(2024, 3))

    def test_entrada_das_rejeita_fator_r_invalido_em_qualquer_anexo(self) -> None:
        for anexo in ("I", "II"):
            for fator_r in ("lixo", -1, float("nan"), float("inf")):
                with self.subTest(anexo=anexo, fator_r=fator_r):
                    with self.assertRaises(ValidationError) as ctx:
                        validar_entrada_das(
                            {"grossRevenue": 100000, "annex": anexo, "competence": "2024-03", "factorR": fator_r},
                            LIMITE_SIMPLES,
                        )
                    self.assertEqual(ctx.exception.code, INVALID_FACTOR_R)

    def test_entrada_das_valida_fator_r_no_anexo_iii(self) -> None:
        with self.assertRaises(ValidationError):
            validar_entrada_das(
                {"grossRevenue": 100000, "annex": "III", "competence": "2024-03", "factorR": "0.2"},
                LIMITE_SIMPLES,
            )

    def test_entrada_das_aceita_dataclass(self) -> None:
        bruto = DASInput(Decimal("500000"), Annex.III, Competencia(2024, 6), Decimal("0.2"))
        self.assertEqual(validar_entrada_das(bruto, LIMITE_SIMPLES), bruto)

    def test_entrada_nao_mapeada_rejeitada(self) -> None:
        with self.assertRaises(ValidationError) as ctx:
            validar_entrada_das([100000, "I"], LIMITE_SIMPLES)
        self.assertEqual(ctx.exception.code, INVALID_REQUEST)

    def test_entrada_irpj_periodicidade_trimestral(self) -> None:
        inp = validar_entrada_irpj(
            {"grossRevenue": 300000, "activityKey": "advocacia", "competence": "2024-T2", "period": "trimestral"}
        )
        self.assertEqual(inp.competencia, Competencia(2024, 6))
        self.assertEqual(inp.periodicidade, "trimestral")

    def test_validar_ano(self) -> None:
        self.assertEqual(validar_ano(2024), 2024)
        self.assertIsInstance(validar_ano(None), int)
        for valor in ("2024", 1800, True):
            with self.subTest(valor=valor):
                with self.assertRaises(ValidationError) as ctx:
                    validar_ano(valor)
                self.assertEqual(ctx.exception.code, INVALID_YEAR)

    def test_entrada_mei(self) -> None:
        atividades = {"comercio": Decimal("71.60"), "servicos": Decimal("75.60")}
        limite = Decimal("6750.00")
        inp = validar_entrada_mei(
            {"grossRevenue": 0, "activity": " Servicos ", "competence": "2024-05"}, atividades, limite
        )
        self.assertEqual(inp.atividade, "servicos")

        with self.assertRaises(DomainLimitError) as ctx:
            validar_entrada_mei({"grossRevenue": 6750.01, "activity": "comercio", "competence": "2024-05"}, atividades, limite)
        self.assertEqual(ctx.exception.code, MEI_REVENUE_EXCEEDS_LIMIT)

        with self.assertRaises(FiscalLookupError) as ctx:
            validar_entrada_mei({"grossRevenue": 100, "activity": "industria", "competence": "2024-05"}, atividades, limite)
        self.assertEqual(ctx.exception.code, INVALID_MEI_ACTIVITY)


if __name__ == "__main__":
    unittest.main()
