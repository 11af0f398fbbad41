from typing import Protocol

import numpy as np


class AudioSourcePort(Protocol):
    @property
    def sample_rate(self) -> int: ...

    @property
    def buffer_size(self) -> int: ...

    async def start(self) -> None: ...
    async def read_chunk(self) -> np.ndarray | None: ...
    async def stop(self) -> None: ...
