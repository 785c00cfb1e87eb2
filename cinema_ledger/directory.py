import itertools
from typing import Dict, Iterable, List, Optional

from .errors import NotFound, ValidationError
from .schemas import Role, User
from .utils import is_single_line, is_valid_credential


class Directory:
    """Username/password records. Passwords are kept and compared in clear text."""

    def __init__(self):
        self._users: Dict[str, User] = {}
        self._ids = itertools.count(1)

    def load(self, users: Iterable[User]) -> None:
        # user ids are not persisted; renumber in load order
        self._users = {}
        self._ids = itertools.count(1)
        for u in users:
            self._users[u.username] = u.model_copy(update={"id": next(self._ids)})

    def _add(self, username: str, password: str, role: Role, display_name: Optional[str]) -> User:
        if not is_valid_credential(username):
            raise ValidationError("Username must be non-empty and contain no spaces")
        if not is_valid_credential(password):
            raise ValidationError("Password must be non-empty and contain no spaces")
        if display_name and not is_single_line(display_name):
            raise ValidationError("Display name must fit on one line")
        if username in self._users:
            raise ValidationError(f"Username '{username}' already exists")
        u = User(
            id=next(self._ids),
            username=username,
            password=password,
            role=role,
            display_name=display_name,
        )
        self._users[username] = u
        return u

    def register(self, username: str, password: str, display_name: str = "") -> User:
        return self._add(username, password, Role.customer, display_name)

    def ensure_admin(self, username: str, password: str) -> Optional[User]:
        """Add a default admin when none exists. Returns the new admin, if any."""
        if any(u.is_admin for u in self._users.values()):
            return None
        return self._add(username, password, Role.admin, None)

    def authenticate(self, username: str, password: str) -> Optional[User]:
        u = self._users.get(username)
        if u is None or u.password != password:
            return None
        return u

    def get(self, username: str) -> User:
        u = self._users.get(username)
        if u is None:
            raise NotFound(f"User '{username}' not found")
        return u

    def list(self) -> List[User]:
        return list(self._users.values())

    def snapshot(self) -> Dict[str, User]:
        return dict(self._users)

    def restore(self, state: Dict[str, User]) -> None:
        self._users = dict(state)
