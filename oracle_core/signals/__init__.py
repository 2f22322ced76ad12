from oracle_core.signals.channel import SignalChannel, SignalEvent

__all__ = ["SignalChannel", "SignalEvent"]
