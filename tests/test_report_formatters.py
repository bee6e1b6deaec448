import unittest
from datetime import date
from decimal import Decimal

from formatters import formatar_data_br, formatar_percentual, formatar_reais
from report_formatters import (
    render_aliquotas_irpj,
    render_das_section,
    render_erro,
    render_irpj_section,
    render_mei_section,
)
from tax_engine import DASCalculator, IRPJCalculator, MEICalculator


class FormattersTests(unittest.TestCase):
    def test_formatar_reais_ptbr(self) -> None:
        self.assertEqual(formatar_reais(100000.0), "R$ 100.000,00")
        self.assertEqual(formatar_reais(Decimal("40500")), "R$ 40.500,00")
        self.assertEqual(formatar_reais("abc"), "R$ abc")

    def test_formatar_percentual(self) -> None:
        self.assertEqual(formatar_percentual(13.5), "13,50%")
        self.assertEqual(formatar_percentual(0.1137, ja_percentual=False), "11,37%")

    def test_formatar_data_br(self) -> None:
        self.assertEqual(formatar_data_br("2025-01-20"), "20/01/2025")
        self.assertEqual(formatar_data_br(date(2024, 4, 20)), "20/04/2024")
        self.assertEqual(formatar_data_br("N/D"), "N/D")


class ReportFormattersTests(unittest.TestCase):
    def test_render_das_com_reducao(self) -> None:
        data = DASCalculator().calcular(
            {"grossRevenue": 500000, "annex": "III", "competence": "2024-06", "factorR": 0.2}
        ).to_payload()
        txt = render_das_section(data)
        self.assertIn("=== DAS - SIMPLES NACIONAL ===", txt)
        self.assertIn("Aliquota nominal: 13,50%", txt)
        self.assertIn("Reducao por Fator R: 5,40%", txt)
        self.assertIn("Aliquota efetiva: 8,10%", txt)
        self.assertIn("Valor devido: R$ 40.500,00", txt)
        self.assertIn("Vencimento: 20/07/2024", txt)
        self.assertNotIn("{", txt)

    def test_render_das_com_partilha(self) -> None:
        data = DASCalculator().calcular({"grossRevenue": 100000, "annex": "I", "competence": "2024-03"}).to_payload()
        txt = render_das_section(data)
        self.assertIn("=== PARTILHA DO DAS POR TRIBUTO ===", txt)
        self.assertIn("CPP | 41,50% | R$ 1.660,00", txt)
        self.assertIn("ICMS | 34,00% | R$ 1.360,00", txt)
        self.assertNotIn("ISS |", txt)

    def test_partilha_ausente(self) -> None:
        self.assertIn("Partilha indisponivel.", render_das_section({"amountDue": 10.0}))

    def test_render_das_sem_reducao_omite_linha(self) -> None:
        data = DASCalculator().calcular({"grossRevenue": 100000, "annex": "I", "competence": "2024-03"}).to_payload()
        self.assertNotIn("Fator R", render_das_section(data))

    def test_render_irpj(self) -> None:
        data = IRPJCalculator().calcular(
            {"grossRevenue": 100000, "activityKey": "advocacia", "competence": "2024-03"}
        ).to_payload()
        txt = render_irpj_section(data)
        self.assertIn("Base de calculo: R$ 32.000,00", txt)
        self.assertIn("Adicional (10% acima de R$ 20.000,00): R$ 1.200,00", txt)
        self.assertIn("Valor devido: R$ 6.000,00", txt)
        self.assertIn("CSLL (9% sobre base de R$ 32.000,00, presuncao 32,00%): R$ 2.880,00", txt)
        self.assertIn("Total IRPJ + CSLL: R$ 8.880,00", txt)

    def test_render_aliquotas(self) -> None:
        linhas = [linha.to_payload() for linha in IRPJCalculator().consultar_aliquotas(ano=2024)]
        txt = render_aliquotas_irpj(linhas)
        self.assertIn("Ano de referencia: 2024", txt)
        self.assertIn("advocacia | 32,00% | 32,00% | Advocacia", txt)
        self.assertIn("comercio | 8,00% | 12,00% | Comercio", txt)
        self.assertIn("CSLL: 9,00%", txt)
        self.assertIn("Sem atividades", render_aliquotas_irpj([]))

    def test_render_mei(self) -> None:
        data = MEICalculator().calcular({"grossRevenue": 5000, "activity": "servicos", "competence": "2024-05"}).to_payload()
        txt = render_mei_section(data)
        self.assertIn("Valor devido: R$ 75,60", txt)
        self.assertIn("limite mensal R$ 6.750,00", txt)

    def test_secoes_vazias(self) -> None:
        for render in (render_das_section, render_irpj_section, render_mei_section):
            with self.subTest(render=render.__name__):
                self.assertIn("Sem dados de calculo.", render({}))

    def test_render_erro(self) -> None:
        txt = render_erro({"code": "ActivityNotFound", "message": "nao encontrada"})
        self.assertEqual(txt, "=== ERRO ===\n[ActivityNotFound] nao encontrada")


if __name__ == "__main__":
    unittest.main()
