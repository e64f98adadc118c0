import pytest

from go_api_spec.config import GeneratorConfig, find_config_file, load_config
from go_api_spec.errors import ConfigError


class TestLoadConfig:
    def test_defaults_without_file(self, tmp_path):
        config = load_config(tmp_path)
        assert config == GeneratorConfig()
        assert config.microservice_dir == "internal/ms"
        assert config.domain_dir == "internal/domain"
        assert config.models_dir == "pkg/models"
        assert config.microservice_prefix == "ms_"
        assert config.business_layer_suffix == "_business_layer"
        assert config.controller_file_markers == ["controller", "http", "setup"]
        assert config.openapi_title == "API"

    def test_generate_section_overrides(self, tmp_path):
        (tmp_path / ".go-api-spec.yaml").write_text(
            "generate:\n"
            "  microservice_dir: services\n"
            "  openapi_title: Shop API\n"
            "  openapi_servers:\n"
            "    - https://api.shop.test\n"
            "  permission_constants:\n"
            "    features.Admin: admin\n"
        )
        config = load_config(tmp_path)
        assert config.microservice_dir == "services"
        assert config.models_dir == "pkg/models"
        assert config.openapi_title == "Shop API"
        assert config.openapi_servers == ["https://api.shop.test"]
        assert config.permission_constants == {"features.Admin": "admin"}

    def test_dotfile_preferred(self, tmp_path):
        (tmp_path / "go-api-spec.yaml").write_text("generate:\n  openapi_title: Plain\n")
        (tmp_path / ".go-api-spec.yaml").write_text("generate:\n  openapi_title: Dot\n")
        assert find_config_file(tmp_path).name == ".go-api-spec.yaml"
        assert load_config(tmp_path).openapi_title == "Dot"

    def test_explicit_path(self, tmp_path):
        custom = tmp_path / "custom.yml"
        custom.write_text("generate:\n  microservice_prefix: svc_\n")
        assert load_config(tmp_path, custom).microservice_prefix == "svc_"

    def test_empty_file_and_missing_section(self, tmp_path):
        (tmp_path / "go-api-spec.yaml").write_text("")
        assert load_config(tmp_path) == GeneratorConfig()
        (tmp_path / "go-api-spec.yaml").write_text("other: 1\n")
        assert load_config(tmp_path) == GeneratorConfig()

    def test_invalid_yaml(self, tmp_path):
        (tmp_path / "go-api-spec.yaml").write_text("generate: [unclosed\n")
        with pytest.raises(ConfigError, match="failed to parse"):
            load_config(tmp_path)

    def test_not_a_mapping(self, tmp_path):
        (tmp_path / "go-api-spec.yaml").write_text("- a\n- b\n")
        with pytest.raises(ConfigError, match="must contain a mapping"):
            load_config(tmp_path)

    def test_section_not_a_mapping(self, tmp_path):
        (tmp_path / "go-api-spec.yaml").write_text("generate: yes\n")
        with pytest.raises(ConfigError, match="must be a mapping"):
            load_config(tmp_path)

    def test_invalid_value(self, tmp_path):
        (tmp_path / "go-api-spec.yaml").write_text("generate:\n  controller_file_markers: 3\n")
        with pytest.raises(ConfigError, match="invalid config file"):
            load_config(tmp_path)

    def test_unreadable_path(self, tmp_path):
        with pytest.raises(ConfigError, match="failed to read"):
            load_config(tmp_path, tmp_path / "missing.yaml")
