import unittest
from decimal import Decimal

from dto import Annex
from fiscal_tables import get_fiscal_tables
from regimes import calcular_aliquota_efetiva, resolver_faixa


class FatorRTests(unittest.TestCase):
    def setUp(self) -> None:
        self.tables = get_fiscal_tables()

    def _efetiva(self, anexo: Annex, receita: str, fator_r):
        faixa = resolver_faixa(self.tables.faixas[anexo], Decimal(receita))
        return faixa, calcular_aliquota_efetiva(
            faixa, anexo, fator_r, self.tables.reducao_fator_r, self.tables.fator_r_limite
        )

    def test_sem_fator_r_efetiva_igual_nominal(self) -> None:
        for anexo in Annex:
            with self.subTest(anexo=anexo):
                faixa, aliquota = self._efetiva(anexo, "500000", None)
                self.assertEqual(aliquota.aliquota_efetiva, faixa.aliquota_nominal)
                self.assertIsNone(aliquota.reducao)

    def test_reducao_nos_anexos_de_servico_abaixo_do_limite(self) -> None:
        for anexo, fator in ((Annex.III, "0.40"), (Annex.IV, "0.32"), (Annex.V, "0.25")):
            with self.subTest(anexo=anexo):
                faixa, aliquota = self._efetiva(anexo, "500000", Decimal("0.20"))
                self.assertEqual(aliquota.reducao, faixa.aliquota_nominal * Decimal(fator))
                self.assertLess(aliquota.aliquota_efetiva, faixa.aliquota_nominal)
                self.assertEqual(aliquota.aliquota_efetiva, faixa.aliquota_nominal - aliquota.reducao)

    def test_fator_r_no_limite_nao_reduz(self) -> None:
        faixa, aliquota = self._efetiva(Annex.III, "500000", Decimal("0.28"))
        self.assertEqual(aliquota.aliquota_efetiva, faixa.aliquota_nominal)
        self.assertIsNone(aliquota.reducao)

    def test_fator_r_ignorado_nos_anexos_i_e_ii(self) -> None:
        for anexo in (Annex.I, Annex.II):
            with self.subTest(anexo=anexo):
                faixa, aliquota = self._efetiva(anexo, "500000", Decimal("0.05"))
                self.assertEqual(aliquota.aliquota_efetiva, faixa.aliquota_nominal)

    def test_anexo_iii_terceira_faixa(self) -> None:
        _, aliquota = self._efetiva(Annex.III, "500000", Decimal("0.20"))
        self.assertEqual(aliquota.reducao, Decimal("5.4"))
        self.assertEqual(aliquota.aliquota_efetiva, Decimal("8.1"))


if __name__ == "__main__":
    unittest.main()
