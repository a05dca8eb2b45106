"""BrokerConfig 加载测试

测试内容：
1. 默认值
2. 环境变量覆盖
3. 非法值回退默认值
"""

from taskflow.broker import BrokerConfig, load_broker_config


class TestLoadBrokerConfig:
    def test_defaults(self, monkeypatch):
        for var in (
            "TASKFLOW_BROKER_PUBLISH_TIMEOUT_S",
            "TASKFLOW_BROKER_PUBLISH_RETRIES",
            "TASKFLOW_BROKER_LEASE_S",
            "TASKFLOW_BROKER_MAX_ATTEMPTS",
            "TASKFLOW_BROKER_POLL_INTERVAL_S",
            "TASKFLOW_BROKER_RETRY_BACKOFF_S",
        ):
            monkeypatch.delenv(var, raising=False)

        assert load_broker_config() == BrokerConfig()

    def test_env_override(self, monkeypatch):
        monkeypatch.setenv("TASKFLOW_BROKER_PUBLISH_TIMEOUT_S", "0.5")
        monkeypatch.setenv("TASKFLOW_BROKER_MAX_ATTEMPTS", "7")
        monkeypatch.setenv("TASKFLOW_BROKER_RETRY_BACKOFF_S", "0")

        config = load_broker_config()

        assert config.publish_timeout_s == 0.5
        assert config.max_attempts == 7
        assert config.retry_backoff_s == 0.0

    def test_invalid_values_fall_back(self, monkeypatch):
        """非数字与越界值都回退默认值"""
        monkeypatch.setenv("TASKFLOW_BROKER_PUBLISH_RETRIES", "many")
        monkeypatch.setenv("TASKFLOW_BROKER_LEASE_S", "-1")
        monkeypatch.setenv("TASKFLOW_BROKER_POLL_INTERVAL_S", "0")

        config = load_broker_config()
        defaults = BrokerConfig()

        assert config.publish_retries == defaults.publish_retries
        assert config.lease_s == defaults.lease_s
        assert config.poll_interval_s == defaults.poll_interval_s
