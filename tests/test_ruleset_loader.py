import unittest

from ruleset_loader import (
    DEFAULT_RULESET_ID,
    get_baseline_mei_params,
    get_baseline_presumido_params,
    get_baseline_simples_tables,
    get_mei_params,
    get_presumido_params,
    get_simples_tables,
    load_ruleset,
)


class RulesetLoaderTests(unittest.TestCase):
    def test_load_ruleset_metadata(self) -> None:
        metadata = load_ruleset(DEFAULT_RULESET_ID)
        self.assertEqual(metadata.get("ruleset_id"), "BR_FISCAL_2024_V1")
        self.assertEqual(metadata.get("vigencia_inicio"), "2024-01-01")
        self.assertEqual(metadata.get("dia_vencimento"), 20)

    def test_presumido_params(self) -> None:
        params = get_presumido_params(DEFAULT_RULESET_ID)
        self.assertEqual(params.get("irpj"), 15.0)
        self.assertEqual(params.get("adicional_irpj"), 10.0)
        self.assertEqual(params.get("limite_adicional_irpj_mensal"), 20000)
        self.assertEqual(params["meses_por_periodicidade"], {"mensal": 1, "trimestral": 3, "anual": 12})

    def test_simples_tables_contains_limite_elegibilidade(self) -> None:
        tables = get_simples_tables(DEFAULT_RULESET_ID)
        self.assertEqual(tables.get("limite_elegibilidade_simples"), 4800000)
        self.assertEqual(tables.get("fator_r_limite"), 0.28)
        self.assertEqual(tables.get("aliquota_base"), "percentual_0_100")
        self.assertEqual(sorted(tables["anexos"]), ["I", "II", "III", "IV", "V"])

    def test_mei_params(self) -> None:
        params = get_mei_params(DEFAULT_RULESET_ID)
        self.assertEqual(params.get("limite_receita_mensal"), 6750)
        self.assertEqual(sorted(params["atividades"]), ["comercio", "comercio_servicos", "servicos"])

    def test_baselines_exist_and_match(self) -> None:
        self.assertEqual(get_baseline_simples_tables(DEFAULT_RULESET_ID), get_simples_tables(DEFAULT_RULESET_ID))
        self.assertEqual(get_baseline_presumido_params(DEFAULT_RULESET_ID), get_presumido_params(DEFAULT_RULESET_ID))
        self.assertEqual(get_baseline_mei_params(DEFAULT_RULESET_ID), get_mei_params(DEFAULT_RULESET_ID))

    def test_retorno_e_copia_independente_do_cache(self) -> None:
        tables = get_simples_tables(DEFAULT_RULESET_ID)
        tables["anexos"]["I"][0]["aliquota_nominal"] = 99.0
        self.assertEqual(get_simples_tables(DEFAULT_RULESET_ID)["anexos"]["I"][0]["aliquota_nominal"], 4.0)

    def test_ruleset_inexistente_gera_erro(self) -> None:
        with self.assertRaises(FileNotFoundError):
            load_ruleset("BR_FISCAL_INEXISTENTE")


if __name__ == "__main__":
    unittest.main()
