from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional
import yaml
import os
from dotenv import load_dotenv

from strategy_engine.core.aggregator import REFERENCE_PORTFOLIO_VALUE, StrategyAggregator
from strategy_engine.strategies.strategy_factory import StrategyFactory
from strategy_engine.utils.logger import TradingLogger

CONFIG_PATH_ENV = "STRATEGY_ENGINE_CONFIG"


@dataclass
class StrategyEntry:
    """One strategy to register: a profile plus config overrides"""
    type: str
    overrides: Dict[str, Any] = field(default_factory=dict)


def _default_strategies() -> List[StrategyEntry]:
    return [
        StrategyEntry(type="aggressive"),
        StrategyEntry(type="balanced"),
        StrategyEntry(type="conservative"),
    ]


@dataclass
class EngineSettings:
    reference_portfolio_value: float = REFERENCE_PORTFOLIO_VALUE
    strategies: List[StrategyEntry] = field(default_factory=_default_strategies)


@dataclass
class LoggingSettings:
    name: str = "strategy_engine"
    log_dir: Optional[str] = "data/logs"
    console_output: bool = True


class Config:
    def __init__(self, config_path: Optional[str] = None):
        load_dotenv()
        self.config_path = config_path or os.getenv(CONFIG_PATH_ENV, "config.yaml")
        self.engine = EngineSettings()
        self.logging = LoggingSettings()

        if os.path.exists(self.config_path):
            self.load_config(self.config_path)

    def load_config(self, config_path: str):
        """Load configuration from YAML file"""
        with open(config_path, 'r') as f:
            config_data = yaml.safe_load(f) or {}

        if 'engine' in config_data:
            engine_data = dict(config_data['engine'] or {})
            strategies = engine_data.pop('strategies', None)
            self.engine = EngineSettings(**engine_data)
            if strategies is not None:
                self.engine.strategies = [
                    StrategyEntry(type=entry['type'], overrides=entry.get('overrides') or {})
                    for entry in strategies
                ]
        if 'logging' in config_data:
            self.logging = LoggingSettings(**(config_data['logging'] or {}))

    def build_logger(self) -> TradingLogger:
        return TradingLogger(
            self.logging.name,
            log_dir=self.logging.log_dir,
            console_output=self.logging.console_output,
        )

    def build_aggregator(self, logger: Optional[TradingLogger] = None) -> StrategyAggregator:
        """Factory plus aggregator with every valid configured strategy registered"""
        logger = logger or self.build_logger()
        factory = StrategyFactory(logger=logger)
        aggregator = StrategyAggregator(
            factory,
            reference_portfolio_value=self.engine.reference_portfolio_value,
            logger=logger,
        )

        for entry in self.engine.strategies:
            try:
                strategy = factory.create_strategy(entry.type, entry.overrides)
            except ValueError as e:
                logger.warning(f"Skipping strategy {entry.type}: {str(e)}")
                continue
            if not factory.validate_config(strategy.config):
                logger.warning(f"Skipping strategy {entry.type}: invalid config {strategy.config}")
                continue
            aggregator.add_strategy(strategy)

        return aggregator
