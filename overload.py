# overload.py
import numpy as np

MAD_MIN_HISTORY = 12


class ThresholdOverloadDetector:
    def __init__(self, threshold=1.0):
        """
        A host is over-utilized when requested CPU / capacity exceeds a cutoff.

        :param threshold: Fixed cutoff used by is_over_utilized()
        """
        self.threshold = threshold

    def is_over_utilized(self, host):
        return self.is_over_utilized_threshold(host, self.threshold)

    def is_over_utilized_threshold(self, host, threshold):
        return host.requested_utilization() > threshold

    def predict_utilization(self, host):
        return host.requested_utilization()

    def metric(self, host):
        return self.threshold


class MadOverloadDetector:
    def __init__(self, history, safety_parameter=2.5, fallback=None, window=30):
        """
        Adaptive cutoff 1 - s * MAD over the host's recent utilization samples.

        Hosts with fewer than 12 recorded samples are classified by the
        fallback detector.

        :param history: HistoryRecorder providing utilization_history(host_id)
        :param safety_parameter: s; larger values consolidate less aggressively
        :param fallback: Detector for hosts with too little history
        :param window: Number of most recent samples considered
        """
        self.history = history
        self.safety_parameter = safety_parameter
        self.fallback = fallback if fallback is not None else ThresholdOverloadDetector(0.8)
        self.window = window

    def _recent(self, host):
        return self.history.utilization_history(host.host_id)[-self.window:]

    def upper_threshold(self, host):
        samples = self._recent(host)
        if len(samples) < MAD_MIN_HISTORY:
            return None
        data = np.asarray(samples, dtype=float)
        mad = np.median(np.abs(data - np.median(data)))
        return 1 - self.safety_parameter * mad

    def is_over_utilized(self, host):
        threshold = self.upper_threshold(host)
        if threshold is None:
            return self.fallback.is_over_utilized(host)
        return self.is_over_utilized_threshold(host, threshold)

    def is_over_utilized_threshold(self, host, threshold):
        return host.requested_utilization() > threshold

    def predict_utilization(self, host):
        return host.requested_utilization()

    def metric(self, host):
        threshold = self.upper_threshold(host)
        if threshold is None:
            return self.fallback.metric(host)
        return float(threshold)


def make_overload_detector(config, history=None):
    if config.overload_policy == "threshold":
        return ThresholdOverloadDetector(config.utilization_threshold)
    elif config.overload_policy == "mad":
        if history is None:
            raise ValueError("The MAD overload detector needs a history recorder")
        return MadOverloadDetector(history, config.mad_safety_parameter,
                                   fallback=ThresholdOverloadDetector(config.utilization_threshold))
    else:
        raise ValueError(f"Unknown overload policy: {config.overload_policy}")
