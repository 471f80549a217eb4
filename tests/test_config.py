import copy
import json
import logging
import os
import tempfile
import unittest
from unittest.mock import patch

from workout_engine.config import DEFAULT_CONFIG, build_gateway, get_api_key, load_config
from workout_engine.errors import ConfigurationError, InputError
from workout_engine.logging_config import JSONFormatter
from workout_engine.model_gateway import AIRequest, AIResponse, ModelGateway, ProviderResult


class ConfigTests(unittest.TestCase):
    def _write_config(self, tmp, text):
        path = os.path.join(tmp, "config.yaml")
        with open(path, "w", encoding="utf-8") as f:
            f.write(text)
        return path

    def test_yaml_overrides_merge_over_defaults(self):
        with tempfile.TemporaryDirectory() as tmp:
            path = self._write_config(tmp, "claude:\n  model: claude-haiku-4-5\ngateway:\n  rate_limit:\n    capacity: 3\n")
            with patch.dict(os.environ, {}, clear=True):
                config = load_config(path)

        self.assertEqual(config["claude"]["model"], "claude-haiku-4-5")
        self.assertEqual(config["claude"]["max_tokens"], 4096)
        self.assertEqual(config["gateway"]["rate_limit"]["capacity"], 3)
        self.assertEqual(config["gateway"]["rate_limit"]["refill_per_second"], 0.5)

    def test_log_level_env_override(self):
        with tempfile.TemporaryDirectory() as tmp:
            path = self._write_config(tmp, "logging:\n  level: INFO\n")
            with patch.dict(os.environ, {"WORKOUT_ENGINE_LOG_LEVEL": "DEBUG"}):
                config = load_config(path)
        self.assertEqual(config["logging"]["level"], "DEBUG")

    def test_missing_explicit_path_raises(self):
        with self.assertRaises(ConfigurationError):
            load_config("/nonexistent/config.yaml")

    def test_non_mapping_yaml_raises(self):
        with tempfile.TemporaryDirectory() as tmp:
            path = self._write_config(tmp, "- just\n- a list\n")
            with self.assertRaises(ConfigurationError):
                load_config(path)

    def test_missing_api_key(self):
        config = load_config()
        with patch.dict(os.environ, {}, clear=True):
            with self.assertRaises(ConfigurationError) as ctx:
                get_api_key(config)
        self.assertEqual(ctx.exception.code, "MISSING_API_KEY")
        self.assertEqual(ctx.exception.to_dict()["code"], "MISSING_API_KEY")

    def test_build_gateway_with_injected_provider(self):
        config = load_config()
        config["audit"]["db_path"] = ""
        gateway = build_gateway(config, provider=object())
        self.assertIsInstance(gateway, ModelGateway)
        self.assertEqual(gateway.max_attempts, config["gateway"]["max_attempts"])
        self.assertIsNone(gateway.audit_log.db)

    def test_default_budget_admits_a_weekly_call(self):
        config = copy.deepcopy(DEFAULT_CONFIG)
        calls = []

        class RecordingProvider:
            def complete(self, system, prompt, max_tokens, temperature, timeout):
                calls.append(max_tokens)
                return ProviderResult(text='{"plan_name": "Week", "days": []}', input_tokens=3000, output_tokens=6000)

        gateway = build_gateway(config, provider=RecordingProvider())
        request = AIRequest(
            request_type="weekly_plan",
            user_message="Design a week.",
            user_id="fresh-user",
            max_tokens=config["claude"]["weekly_max_tokens"],
        )
        response = gateway.complete(request)

        self.assertIsInstance(response, AIResponse)
        self.assertEqual(calls, [config["claude"]["weekly_max_tokens"]])

    def test_build_gateway_persists_audit_when_configured(self):
        with tempfile.TemporaryDirectory() as tmp:
            config = load_config()
            config["audit"]["db_path"] = os.path.join(tmp, "audit.db")
            gateway = build_gateway(config, provider=object())
            try:
                self.assertIsNotNone(gateway.audit_log.db)
                self.assertEqual(gateway.audit_log.db.fetch_records(), [])
            finally:
                gateway.audit_log.db.close()


class ErrorAndLoggingTests(unittest.TestCase):
    def test_error_codes(self):
        self.assertEqual(InputError("bad").code, "INVALID_INPUT")
        self.assertEqual(ConfigurationError("missing").code, "CONFIG_ERROR")
        self.assertEqual(ConfigurationError("x", code="AI_NOT_CONFIGURED").to_dict()["code"], "AI_NOT_CONFIGURED")

    def test_json_formatter_includes_context(self):
        record = logging.LogRecord("workout_engine.test", logging.INFO, __file__, 10, "hello %s", ("there",), None)
        record.ctx_user_id = "user-1"
        data = json.loads(JSONFormatter().format(record))
        self.assertEqual(data["message"], "hello there")
        self.assertEqual(data["level"], "INFO")
        self.assertEqual(data["context"], {"ctx_user_id": "user-1"})


if __name__ == "__main__":
    unittest.main()
