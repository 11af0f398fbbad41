class SpeechRelayError(Exception):
    pass


class ResourceAcquisitionError(SpeechRelayError):
    pass


class TransientTransportError(SpeechRelayError):
    pass


class MalformedFrameError(SpeechRelayError):
    pass


class InferenceError(SpeechRelayError):
    pass
