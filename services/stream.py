# services/stream.py
import datetime
import logging
import threading
from typing import Callable, List, Optional, Tuple

from services.clinic import Clinic


class ClinicStream:
    """Live view of the clinics collection.

    Every Firestore snapshot republishes the full normalized list to all
    listeners. The last good list stays available after an error so callers
    can keep showing it while flagging it as stale.
    """

    def __init__(self, db, collection: str = "clinics"):
        self._firestore = db
        self._collection = collection
        self._watch = None
        self._lock = threading.Lock()
        self._listeners = []
        self._clinics: Tuple[Clinic, ...] = ()
        self._ready = False
        self._error: Optional[str] = None
        self._updated_at: Optional[datetime.datetime] = None

    def start(self):
        if self._watch is not None:
            return self
        # the first snapshot can fire before on_snapshot returns
        watch = self._firestore.collection(self._collection).on_snapshot(self._on_snapshot)
        with self._lock:
            self._watch = watch
        logging.info("Subscribed to '%s' collection", self._collection)
        return self

    def close(self):
        with self._lock:
            watch, self._watch = self._watch, None
            self._listeners = []
        if watch is not None:
            watch.unsubscribe()
            logging.info("Unsubscribed from '%s' collection", self._collection)

    def subscribe(self, listener: Callable[[Tuple[Clinic, ...]], None],
                  on_error: Callable[[Exception], None] = None) -> Callable[[], None]:
        entry = (listener, on_error)
        with self._lock:
            self._listeners.append(entry)
            ready, clinics = self._ready, self._clinics
        if ready:
            self._deliver(listener, on_error, clinics)

        def unsubscribe():
            with self._lock:
                if entry in self._listeners:
                    self._listeners.remove(entry)

        return unsubscribe

    @property
    def clinics(self) -> Tuple[Clinic, ...]:
        return self._clinics

    @property
    def ready(self) -> bool:
        return self._ready

    @property
    def error(self) -> Optional[str]:
        with self._lock:
            lost = (self._error is None and self._watch is not None
                    and not getattr(self._watch, "is_active", True))
            if lost:
                self._error = "Clinic subscription is no longer active"
            error = self._error
        if lost:
            logging.warning("%s; serving last known list", error)
        return error

    def status(self) -> dict:
        error = self.error
        return {
            "ready": self._ready,
            "stale": error is not None,
            "error": error,
            "count": len(self._clinics),
            "updated_at": self._updated_at.isoformat() if self._updated_at else None,
        }

    def _on_snapshot(self, docs, changes=None, read_time=None):
        try:
            clinics = tuple(self._normalize(docs))
        except Exception as e:
            logging.error("Error handling clinics snapshot: %s", str(e))
            self._fail(e)
            return

        with self._lock:
            self._clinics = clinics
            self._ready = True
            self._error = None
            self._updated_at = datetime.datetime.now(datetime.timezone.utc)
            listeners = list(self._listeners)
        logging.info("Clinics snapshot: %d usable of %d documents", len(clinics), len(docs))

        for listener, on_error in listeners:
            self._deliver(listener, on_error, clinics)

    @staticmethod
    def _deliver(listener, on_error, clinics):
        try:
            listener(clinics)
        except Exception as e:
            logging.error("Clinic listener failed: %s", str(e))
            if on_error:
                on_error(e)

    def _fail(self, error: Exception):
        with self._lock:
            self._error = str(error) or error.__class__.__name__
            listeners = list(self._listeners)
        for _, on_error in listeners:
            if on_error:
                on_error(error)

    @staticmethod
    def _normalize(docs) -> List[Clinic]:
        clinics = []
        for doc in docs:
            try:
                clinic = Clinic.from_document(doc.id, doc.to_dict())
            except Exception as e:
                logging.warning("Skipping malformed clinic %s: %s", getattr(doc, "id", "?"), str(e))
                continue
            if clinic.coords is None:
                logging.debug("Dropping clinic %s: coords did not normalize", doc.id)
                continue
            clinics.append(clinic)
        return clinics
