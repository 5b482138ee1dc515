import threading
from dataclasses import dataclass
from dataclasses import field
from datetime import datetime
from datetime import timezone


@dataclass
class Note:
    id: int
    text: str
    author: str
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


class NoteStore:
    def __init__(self):
        self._notes = []
        self._hooks = []
        self._lock = threading.Lock()

    def add(self, text, author):
        with self._lock:
            note = Note(id=len(self._notes) + 1, text=text, author=author)
            self._notes.append(note)
            return note

    def list(self):
        with self._lock:
            # newest first
            return list(reversed(self._notes))

    def record_hook(self, kind):
        with self._lock:
            self._hooks.append(kind)

    @property
    def hooks(self):
        with self._lock:
            return list(self._hooks)
