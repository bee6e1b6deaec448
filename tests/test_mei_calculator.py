import unittest
from datetime import date
from decimal import Decimal

from errors import INVALID_MEI_ACTIVITY, MEI_REVENUE_EXCEEDS_LIMIT, DomainLimitError, FiscalLookupError
from tax_engine import MEICalculator


class MEICalculatorTests(unittest.TestCase):
    def setUp(self) -> None:
        self.calc = MEICalculator()

    def test_valores_fixos_por_atividade(self) -> None:
        esperados = {"comercio": "71.60", "servicos": "75.60", "comercio_servicos": "76.60"}
        for atividade, valor in esperados.items():
            with self.subTest(atividade=atividade):
                out = self.calc.calcular({"grossRevenue": 5000, "activity": atividade, "competence": "2024-05"})
                self.assertEqual(out.valor_devido, Decimal(valor))
                self.assertEqual(out.vencimento, date(2024, 6, 20))

    def test_valor_independe_da_receita(self) -> None:
        baixo = self.calc.calcular({"grossRevenue": 0, "activity": "servicos", "competence": "2024-12"})
        alto = self.calc.calcular({"grossRevenue": 6750, "activity": "servicos", "competence": "2024-12"})
        self.assertEqual(baixo.valor_devido, alto.valor_devido)
        self.assertEqual(alto.vencimento, date(2025, 1, 20))

    def test_receita_acima_do_limite_mensal(self) -> None:
        with self.assertRaises(DomainLimitError) as ctx:
            self.calc.calcular({"grossRevenue": 7000, "activity": "comercio", "competence": "2024-05"})
        self.assertEqual(ctx.exception.code, MEI_REVENUE_EXCEEDS_LIMIT)

    def test_atividade_invalida(self) -> None:
        with self.assertRaises(FiscalLookupError) as ctx:
            self.calc.calcular({"grossRevenue": 100, "activity": "industria", "competence": "2024-05"})
        self.assertEqual(ctx.exception.code, INVALID_MEI_ACTIVITY)

    def test_payload(self) -> None:
        out = self.calc.calcular({"grossRevenue": 1234.5, "activity": "Comercio Servicos", "competence": "2024-05"})
        payload = out.to_payload()
        self.assertEqual(payload["activity"], "comercio_servicos")
        self.assertEqual(payload["amountDue"], 76.6)
        self.assertEqual(payload["grossRevenue"], 1234.5)
        self.assertEqual(payload["monthlyRevenueLimit"], 6750.0)
        self.assertEqual(payload["dueDate"], "2024-06-20")


if __name__ == "__main__":
    unittest.main()
