from dataclasses import dataclass, field
import logging
from logging.config import dictConfig
from typing import Dict, List, Optional, Union, Any

LEVEL_MAP = {
    'DEBUG': logging.DEBUG,
    'INFO': logging.INFO,
    'WARNING': logging.WARNING,
    'WARN': logging.WARNING,
    'ERROR': logging.ERROR,
    'CRITICAL': logging.CRITICAL
}


@dataclass
class LoggerDef:
    """Definition of a logger configuration."""
    name: str
    description: str
    custom_level: Optional[str] = None
    propagate: bool = False
    handler_names: list[str] = field(default_factory=list, repr=False)


class LogController:
    """
    Owns the logging configuration for every logger the package uses,
    applied through logging.config.dictConfig with a single stdout handler.
    Loggers without a custom level follow the default level.
    """
    controller = None

    @classmethod
    def get_controller(cls):
        if cls.controller is None:
            raise Exception('you must call make controller first, or initialize it directly')
        return cls.controller

    @classmethod
    def make_controller(cls, *args, **kwargs):
        if cls.controller is not None:
            raise Exception('you must call make_controller one time only, then call get_controller afterwards')
        cls.controller = cls(*args, **kwargs)
        return cls.controller

    def __init__(self, additional_loggers: Optional[List[tuple]] = None, default_level: str = "ERROR"):
        """
        Args:
            additional_loggers: Optional list of tuples (name, description) to add to known loggers
            default_level: Level for every logger that has not been given its own
        """
        if LogController.controller is not None:
            raise Exception('initializing LogController class twice causes issues')
        LogController.controller = self
        self.default_level = default_level.upper()
        self.default_handlers: List[str] = ["stdout"]
        self.known_loggers = {}
        for name, description in [('', 'root logger'),
                                  ('RaftServer', 'Server instance, message and timer dispatch'),
                                  ('Leader', 'Leader role'),
                                  ('Follower', 'Follower role'),
                                  ('Candidate', 'Candidate role'),
                                  ('Initializing', 'Role of a server waiting for a configuration'),
                                  ('BaseRole', 'Base role functionality'),
                                  ('Elections', 'Events in election logic'),
                                  ('Heartbeats', 'Leader heartbeat sends'),
                                  ('SimulatedRpc', 'In process transport'),
                                  ('RaftClient', 'Client request retries'),
                                  ('ServerState', 'Server state rebuilds'),
                                  ('MemoryLog', 'In memory log')]:
            self.known_loggers[name] = LoggerDef(name, description,
                                                 handler_names=self.default_handlers.copy())
        if additional_loggers:
            for logger_name, description in additional_loggers:
                self.known_loggers[logger_name] = LoggerDef(
                    logger_name, description, handler_names=self.default_handlers.copy()
                )
        self._saved_levels: Dict[str, int] = {}
        self._saved_custom_levels: Dict[str, Optional[str]] = {}
        self.apply_config()

    @staticmethod
    def level_to_int(level: Union[str, int]) -> int:
        if isinstance(level, int):
            return level
        level_upper = level.upper()
        if level_upper not in LEVEL_MAP:
            raise ValueError(f"Invalid level: {level}. Valid levels: {list(LEVEL_MAP.keys())}")
        return LEVEL_MAP[level_upper]

    def set_logger_level(self, logger_name: str, level: Union[str, int]) -> None:
        """
        Set the logging level for a specific logger and mark it as custom,
        so that later default level changes leave it alone.
        """
        if logger_name not in self.known_loggers:
            raise ValueError(f"Unknown logger: {logger_name}. Known loggers: {list(self.known_loggers.keys())}")
        int_level = self.level_to_int(level)
        logging.getLogger(logger_name).setLevel(int_level)
        self.known_loggers[logger_name].custom_level = logging.getLevelName(int_level)

    def set_default_level(self, level: Union[str, int]) -> None:
        int_level = self.level_to_int(level)
        self.default_level = logging.getLevelName(int_level)
        for logger_name, logger_def in self.known_loggers.items():
            if logger_def.custom_level is None:
                logging.getLogger(logger_name).setLevel(int_level)

    def get_logger_level(self, logger_name: str) -> int:
        if logger_name not in self.known_loggers:
            raise ValueError(f"Unknown logger: {logger_name}")
        return logging.getLogger(logger_name).level

    def save_current_levels(self) -> None:
        self._saved_levels = {}
        self._saved_custom_levels = {}
        for logger_name, logger_def in self.known_loggers.items():
            self._saved_levels[logger_name] = logging.getLogger(logger_name).level
            self._saved_custom_levels[logger_name] = logger_def.custom_level

    def restore_saved_levels(self) -> None:
        if not self._saved_levels:
            raise RuntimeError("No saved levels to restore. Call save_current_levels() first.")
        for logger_name, saved_level in self._saved_levels.items():
            logging.getLogger(logger_name).setLevel(saved_level)
            self.known_loggers[logger_name].custom_level = self._saved_custom_levels[logger_name]
        self._saved_levels = {}
        self._saved_custom_levels = {}

    def add_logger(self, logger_name: str, description: str = "", level: Optional[Union[str, int]] = None):
        self.known_loggers[logger_name] = LoggerDef(logger_name, description,
                                                    handler_names=self.default_handlers.copy())
        self.apply_config()
        if level is not None:
            self.set_logger_level(logger_name, level)
        return logging.getLogger(logger_name)

    def apply_config(self) -> None:
        dictConfig(self.to_dict_config())

    def to_dict_config(self) -> Dict[str, Any]:
        formatters = {
            "standard": {
                "format": "[%(asctime)s.%(msecs)03d %(levelname)-7s] %(name)-15s: %(message)s",
                'datefmt': "%M:%S"
            }
        }
        handlers = {
            "stdout": {
                "level": "DEBUG",
                "formatter": "standard",
                "class": "logging.StreamHandler",
                "stream": "ext://sys.stdout",
            }
        }
        loggers = {}
        for logger_name, logger_def in self.known_loggers.items():
            if logger_def.custom_level is not None:
                level = logger_def.custom_level
            else:
                level = self.default_level
            loggers[logger_name] = {
                "handlers": logger_def.handler_names,
                "level": level,
                "propagate": logger_def.propagate
            }
        return {
            "version": 1,
            "disable_existing_loggers": True,
            "formatters": formatters,
            "handlers": handlers,
            "loggers": loggers
        }


class TemporaryLogControl:
    """
    Context manager for temporarily changing logging levels, for
    silencing some loggers during a noisy part of a test.
    """

    def __init__(self, log_controller: LogController, keep_active: Optional[List[str]] = None,
                 silence_level: Optional[Union[str, int]] = None):
        self.log_controller = log_controller
        self.keep_active = keep_active or []
        self.silence_level = silence_level if silence_level is not None else log_controller.default_level

    def __enter__(self):
        self.log_controller.save_current_levels()
        for logger_name in self.log_controller.known_loggers:
            if logger_name not in self.keep_active:
                self.log_controller.set_logger_level(logger_name, self.silence_level)
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.log_controller.restore_saved_levels()
