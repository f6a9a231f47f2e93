# history.py
import logging
from collections import namedtuple

import matplotlib.pyplot as plt
import pandas as pd
import seaborn as sns

logger = logging.getLogger(__name__)

UtilizationSample = namedtuple("UtilizationSample", ["host_id", "timestamp", "cpu_utilization", "metric"])

EXECUTION_PHASES = ("host_selection", "vm_selection", "vm_reallocation", "total")


class SimulationClock:
    def __init__(self, start=0.0):
        self.current_time = start

    def now(self):
        return self.current_time

    def advance(self, time_step):
        if time_step < 0:
            raise ValueError(f"Clock cannot move backwards (time_step={time_step})")
        self.current_time += time_step
        return self.current_time


class HistoryRecorder:
    def __init__(self):
        """
        Append-only per-host time series of (timestamp, CPU utilization, metric),
        plus per-phase execution times of planning passes.
        """
        self._time_history = {}
        self._utilization_history = {}
        self._metric_history = {}
        self._execution_times = {phase: [] for phase in EXECUTION_PHASES}

    def add_entry(self, host, metric, timestamp):
        """
        Record the host's current utilization and a detector metric.
        Returns False (and records nothing) when the host already has a
        sample at this timestamp or a later one.
        """
        host_id = host.host_id
        times = self._time_history.setdefault(host_id, [])
        if times and timestamp <= times[-1]:
            if timestamp < times[-1]:
                logger.warning(f"[History] Host {host_id}: timestamp {timestamp} is older than {times[-1]}, ignored")
            return False
        times.append(timestamp)
        self._utilization_history.setdefault(host_id, []).append(host.cpu_utilization())
        self._metric_history.setdefault(host_id, []).append(metric)
        return True

    def utilization_history(self, host_id):
        return list(self._utilization_history.get(host_id, []))

    def metric_history(self, host_id):
        return list(self._metric_history.get(host_id, []))

    def time_history(self, host_id):
        return list(self._time_history.get(host_id, []))

    def host_ids(self):
        return list(self._time_history)

    def samples(self, host_id=None):
        host_ids = self.host_ids() if host_id is None else [host_id]
        result = []
        for hid in host_ids:
            for t, u, m in zip(self._time_history.get(hid, []),
                               self._utilization_history.get(hid, []),
                               self._metric_history.get(hid, [])):
                result.append(UtilizationSample(hid, t, u, m))
        return result

    def add_execution_time(self, phase, seconds):
        if phase not in self._execution_times:
            raise ValueError(f"Unknown execution phase: {phase}")
        self._execution_times[phase].append(seconds)

    def execution_time_history(self, phase):
        if phase not in self._execution_times:
            raise ValueError(f"Unknown execution phase: {phase}")
        return list(self._execution_times[phase])

    def to_dataframe(self):
        return pd.DataFrame(self.samples(), columns=list(UtilizationSample._fields))

    def execution_times_dataframe(self):
        rows = []
        for phase, values in self._execution_times.items():
            for pass_index, seconds in enumerate(values):
                rows.append({"phase": phase, "pass": pass_index, "seconds": seconds})
        return pd.DataFrame(rows, columns=["phase", "pass", "seconds"])

    def plot_utilization(self, ax=None):
        if ax is None:
            _, ax = plt.subplots(figsize=(14, 6))
        for host_id in self.host_ids():
            ax.plot(self._time_history[host_id], self._utilization_history[host_id],
                    label=host_id, alpha=0.8)
        ax.set_title("CPU Utilization of Hosts")
        ax.set_xlabel("Time (s)")
        ax.set_ylabel("CPU Utilization (0–1)")
        ax.grid(True)
        if self.host_ids():
            ax.legend(ncol=4, fontsize='small', loc='upper center', bbox_to_anchor=(0.5, -0.15))
        return ax

    def plot_execution_times(self, ax=None):
        if ax is None:
            _, ax = plt.subplots(figsize=(12, 6))
        df = self.execution_times_dataframe()
        sns.boxplot(x="phase", y="seconds", data=df, order=list(EXECUTION_PHASES), ax=ax)
        ax.set_title("Planning Pass Execution Time by Phase")
        ax.set_xlabel("Phase")
        ax.set_ylabel("Execution time (s)")
        ax.grid(axis="y")
        return ax
