import os
from raftsim.log_control import LogController


def setup_logging():

    if LogController.controller:
        return LogController.controller
    test_loggers = [('MiniRaftCluster', 'Cluster harness'),
                    ('LeaderEnforcer', 'Leader enforcement through transport controls'),
                    ('test_code', 'Test code logger')]
    log_control = LogController.make_controller(additional_loggers=test_loggers)
    if "RAFT_DEBUG_LOGGING" in os.environ:
        log_control.set_default_level('debug')
    elif "RAFT_INFO_LOGGING" in os.environ:
        log_control.set_default_level('info')
    elif "RAFT_WARN_LOGGING" in os.environ:
        log_control.set_default_level('warning')
    else:
        log_control.set_default_level('error')

    return log_control
