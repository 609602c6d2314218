"""
Mirror Cache: last-known lease per session for one UI context.

Created when the context mounts, cleared when it unmounts. Nothing here is
shared between contexts or persisted across reloads.
"""

from typing import Dict, Iterator, Optional

from lease_relay.models.synchronizer import ClientMirror


class MirrorCache:
    def __init__(self):
        self._mirrors: Dict[str, ClientMirror] = {}

    def get(self, session_id: str) -> Optional[ClientMirror]:
        return self._mirrors.get(session_id)

    def put(self, mirror: ClientMirror) -> None:
        self._mirrors[mirror.session_id] = mirror

    def discard(self, session_id: str) -> bool:
        return self._mirrors.pop(session_id, None) is not None

    def clear(self) -> None:
        self._mirrors.clear()

    def __contains__(self, session_id: str) -> bool:
        return session_id in self._mirrors

    def __len__(self) -> int:
        return len(self._mirrors)

    def __iter__(self) -> Iterator[str]:
        return iter(list(self._mirrors))
