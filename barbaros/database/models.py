import json
import math
import re
import secrets
import sqlite3
import string
from datetime import date, datetime, timezone
from barbaros.config.settings import ADMIN_ROLES, DEFAULT_PAGE_SIZE, VISITS_PER_REWARD
from barbaros.database.db_manager import DatabaseManager

TIMESTAMP_FORMAT = "%Y-%m-%d %H:%M:%S"
_OBJECT_ID = re.compile(r"[0-9a-fA-F]{24}")
_CLIENT_ID_ALPHABET = string.ascii_letters + string.digits


def now_timestamp():
    return datetime.now(timezone.utc).strftime(TIMESTAMP_FORMAT)


def new_object_id():
    """
    24 hex characters, the same shape as the ids printed on older badges.
    """
    return secrets.token_hex(12)


def is_object_id(value):
    return isinstance(value, str) and _OBJECT_ID.fullmatch(value) is not None


def generate_client_id():
    return "C" + "".join(secrets.choice(_CLIENT_ID_ALPHABET) for _ in range(8))


def _as_timestamp(value, end_of_day=False):
    if isinstance(value, datetime):
        return value.strftime(TIMESTAMP_FORMAT)
    if isinstance(value, date):
        return f"{value.isoformat()} {'23:59:59' if end_of_day else '00:00:00'}"
    return str(value)


def _page(items, total, page, limit):
    return {
        "items": items,
        "pagination": {
            "total": total,
            "page": page,
            "limit": limit,
            "pages": math.ceil(total / limit) if limit else 0,
        },
    }


def _like(query):
    escaped = query.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
    return f"%{escaped}%"


class Client:
    """
    Client model for database operations.
    """

    FIELDS = (
        'first_name', 'last_name', 'email', 'phone_number', 'password_hash', 'last_login',
        'visit_count', 'rewards_earned', 'rewards_redeemed', 'account_active',
        'preferred_services', 'qr_code_id', 'qr_code_url', 'last_visit',
    )

    def __init__(self, db_manager: DatabaseManager):
        self.db = db_manager

    @staticmethod
    def _to_dict(row):
        if row is None:
            return None
        client = dict(row)
        client['preferred_services'] = json.loads(client.get('preferred_services') or '[]')
        client['account_active'] = bool(client['account_active'])
        client['full_name'] = f"{client['first_name']} {client['last_name']}"
        return client

    def create(self, first_name: str, last_name: str, email: str, phone_number: str = '',
               password_hash: str = None, client_id: str = None, preferred_services=None,
               account_active: bool = True):
        """
        Create a new client and return it.
        A client_id (C + 8 alphanumerics) is generated when not given.
        """
        record_id = new_object_id()
        if not client_id:
            client_id = generate_client_id()
            while self.get_by_client_id(client_id):
                client_id = generate_client_id()

        query = """
            INSERT INTO clients (id, client_id, first_name, last_name, email, phone_number,
                                 password_hash, date_created, account_active, preferred_services)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
        """
        params = (
            record_id, client_id, first_name, last_name, email.strip().lower(), phone_number or '',
            password_hash, now_timestamp(), int(account_active), json.dumps(preferred_services or []),
        )
        try:
            self.db.execute_update(query, params)
        except sqlite3.IntegrityError as e:
            self.db.logger.error(f"Failed to create client {email}: {e}")
            raise ValueError("Email or client ID already in use") from e
        return self.get_by_id(record_id)

    def get_by_id(self, record_id: str):
        """
        Get client by primary key. Anything that is not a 24 hex id gives None.
        """
        if not is_object_id(record_id):
            return None
        result = self.db.execute_query("SELECT * FROM clients WHERE id = ?", (record_id.lower(),))
        return self._to_dict(result[0]) if result else None

    def get_by_client_id(self, client_id: str):
        result = self.db.execute_query("SELECT * FROM clients WHERE client_id = ?", (client_id,))
        return self._to_dict(result[0]) if result else None

    def get_by_qr_code_id(self, qr_code_id: str):
        result = self.db.execute_query("SELECT * FROM clients WHERE qr_code_id = ?", (qr_code_id,))
        return self._to_dict(result[0]) if result else None

    def get_by_email(self, email: str):
        result = self.db.execute_query(
            "SELECT * FROM clients WHERE email = ?", (email.strip().lower(),)
        )
        return self._to_dict(result[0]) if result else None

    def update(self, record_id: str, **fields):
        """
        Update client fields.

        Returns:
            The updated client, or None if it does not exist
        """
        unknown = set(fields) - set(self.FIELDS)
        if unknown:
            raise ValueError(f"Unknown client fields: {', '.join(sorted(unknown))}")
        if not is_object_id(record_id):
            return None
        if not fields:
            return self.get_by_id(record_id)

        if 'preferred_services' in fields:
            fields['preferred_services'] = json.dumps(fields['preferred_services'] or [])
        if 'account_active' in fields:
            fields['account_active'] = int(bool(fields['account_active']))
        if 'email' in fields:
            fields['email'] = fields['email'].strip().lower()

        updates = ", ".join(f"{name} = ?" for name in fields)
        params = list(fields.values()) + [record_id.lower()]
        try:
            changed = self.db.execute_update(f"UPDATE clients SET {updates} WHERE id = ?", tuple(params))
        except sqlite3.IntegrityError as e:
            self.db.logger.error(f"Failed to update client {record_id}: {e}")
            raise ValueError("Email already in use") from e
        if not changed:
            return None
        return self.get_by_id(record_id)

    def delete(self, record_id: str):
        """
        Delete a client and its visits (cascade delete).
        """
        if not is_object_id(record_id):
            return False
        return self.db.execute_update("DELETE FROM clients WHERE id = ?", (record_id.lower(),)) > 0

    def list(self, page: int = 1, limit: int = DEFAULT_PAGE_SIZE):
        """
        List clients ordered by last name, first name.
        """
        page = max(page, 1)
        rows = self.db.execute_query(
            "SELECT * FROM clients ORDER BY last_name, first_name LIMIT ? OFFSET ?",
            (limit, (page - 1) * limit),
        )
        total = self.db.execute_query("SELECT COUNT(*) AS count FROM clients")[0]['count']
        return _page([self._to_dict(r) for r in rows], total, page, limit)

    def search(self, query: str, page: int = 1, limit: int = DEFAULT_PAGE_SIZE):
        """
        Case-insensitive search over name, email, phone number and client id.
        """
        page = max(page, 1)
        pattern = _like(query.strip())
        where = """
            WHERE first_name LIKE :q ESCAPE '\\' OR last_name LIKE :q ESCAPE '\\'
               OR email LIKE :q ESCAPE '\\' OR phone_number LIKE :q ESCAPE '\\'
               OR client_id LIKE :q ESCAPE '\\'
        """
        rows = self.db.execute_query(
            f"SELECT * FROM clients {where} ORDER BY last_name, first_name LIMIT :limit OFFSET :offset",
            {"q": pattern, "limit": limit, "offset": (page - 1) * limit},
        )
        total = self.db.execute_query(f"SELECT COUNT(*) AS count FROM clients {where}", {"q": pattern})[0]['count']
        return _page([self._to_dict(r) for r in rows], total, page, limit)

    def update_visit_count(self, record_id: str, increment: int = 1, visits_per_reward: int = VISITS_PER_REWARD):
        """
        Adjust the visit count. Reaching a multiple of visits_per_reward
        earns one reward.

        Raises:
            LookupError: client not found
        """
        with self.db.get_connection() as conn:
            client = self.get_by_id(record_id)
            if not client:
                raise LookupError(f"Client not found: {record_id}")

            visit_count = max(client['visit_count'] + increment, 0)
            rewards_earned = client['rewards_earned']
            if increment > 0 and visit_count % visits_per_reward == 0:
                rewards_earned += 1

            if increment > 0:
                conn.execute(
                    "UPDATE clients SET visit_count = ?, rewards_earned = ?, last_visit = ? WHERE id = ?",
                    (visit_count, rewards_earned, now_timestamp(), client['id']),
                )
            else:
                conn.execute(
                    "UPDATE clients SET visit_count = ? WHERE id = ?",
                    (visit_count, client['id']),
                )
        return self.get_by_id(record_id)

    def count(self):
        return self.db.execute_query("SELECT COUNT(*) AS count FROM clients")[0]['count']


class Admin:
    """
    Staff account model for database operations.
    """

    def __init__(self, db_manager: DatabaseManager):
        self.db = db_manager

    @staticmethod
    def _to_dict(row):
        if row is None:
            return None
        admin = dict(row)
        admin['active'] = bool(admin['active'])
        return admin

    def create(self, username: str, password_hash: str, name: str, role: str, email: str):
        if role not in ADMIN_ROLES:
            raise ValueError(f"Role must be one of: {', '.join(ADMIN_ROLES)}")
        record_id = new_object_id()
        query = """
            INSERT INTO admins (id, username, password_hash, name, role, email)
            VALUES (?, ?, ?, ?, ?, ?)
        """
        try:
            self.db.execute_update(
                query, (record_id, username.strip(), password_hash, name.strip(), role, email.strip().lower())
            )
        except sqlite3.IntegrityError as e:
            self.db.logger.error(f"Failed to create admin {username}: {e}")
            raise ValueError("Username or email already in use") from e
        return self.get_by_id(record_id)

    def get_by_id(self, record_id: str):
        result = self.db.execute_query("SELECT * FROM admins WHERE id = ?", (record_id,))
        return self._to_dict(result[0]) if result else None

    def get_by_email(self, email: str):
        result = self.db.execute_query(
            "SELECT * FROM admins WHERE email = ?", (email.strip().lower(),)
        )
        return self._to_dict(result[0]) if result else None

    def update_last_login(self, record_id: str):
        timestamp = now_timestamp()
        self.db.execute_update(
            "UPDATE admins SET last_login = ?, updated_at = ? WHERE id = ?",
            (timestamp, timestamp, record_id),
        )

    def count(self):
        return self.db.execute_query("SELECT COUNT(*) AS count FROM admins")[0]['count']


class Reward:
    """
    Loyalty ladder rung: a reward unlocked after a number of visits.
    """

    FIELDS = ('name', 'description', 'visits_required', 'is_active')

    def __init__(self, db_manager: DatabaseManager):
        self.db = db_manager

    @staticmethod
    def _to_dict(row):
        if row is None:
            return None
        reward = dict(row)
        reward['is_active'] = bool(reward['is_active'])
        return reward

    def create(self, name: str, description: str, visits_required: int, is_active: bool = True):
        if visits_required < 1:
            raise ValueError("visits_required must be at least 1")
        record_id = new_object_id()
        self.db.execute_update(
            """
            INSERT INTO rewards (id, name, description, visits_required, is_active)
            VALUES (?, ?, ?, ?, ?)
            """,
            (record_id, name.strip(), description, visits_required, int(is_active)),
        )
        return self.get_by_id(record_id)

    def get_by_id(self, record_id: str):
        result = self.db.execute_query("SELECT * FROM rewards WHERE id = ?", (record_id,))
        return self._to_dict(result[0]) if result else None

    def get_active(self):
        rows = self.db.execute_query(
            "SELECT * FROM rewards WHERE is_active = 1 ORDER BY visits_required, name"
        )
        return [self._to_dict(r) for r in rows]

    def get_all(self):
        rows = self.db.execute_query("SELECT * FROM rewards ORDER BY visits_required, name")
        return [self._to_dict(r) for r in rows]

    def update(self, record_id: str, **fields):
        unknown = set(fields) - set(self.FIELDS)
        if unknown:
            raise ValueError(f"Unknown reward fields: {', '.join(sorted(unknown))}")
        if not fields:
            return self.get_by_id(record_id)
        if 'is_active' in fields:
            fields['is_active'] = int(bool(fields['is_active']))
        fields['updated_at'] = now_timestamp()
        updates = ", ".join(f"{name} = ?" for name in fields)
        changed = self.db.execute_update(
            f"UPDATE rewards SET {updates} WHERE id = ?", tuple(fields.values()) + (record_id,)
        )
        return self.get_by_id(record_id) if changed else None

    def delete(self, record_id: str):
        return self.db.execute_update("DELETE FROM rewards WHERE id = ?", (record_id,)) > 0


class ServiceCategory:
    """
    Grouping for the service menu, shown in display_order.
    """

    FIELDS = ('name', 'description', 'display_order', 'is_active')

    def __init__(self, db_manager: DatabaseManager):
        self.db = db_manager

    @staticmethod
    def _to_dict(row):
        if row is None:
            return None
        category = dict(row)
        category['is_active'] = bool(category['is_active'])
        return category

    def create(self, name: str, description: str, display_order: int = 0, is_active: bool = True):
        if not name or not name.strip():
            raise ValueError("Category name is required")
        record_id = new_object_id()
        try:
            self.db.execute_update(
                """
                INSERT INTO service_categories (id, name, description, display_order, is_active)
                VALUES (?, ?, ?, ?, ?)
                """,
                (record_id, name.strip(), description, display_order, int(is_active)),
            )
        except sqlite3.IntegrityError as e:
            self.db.logger.error(f"Failed to create service category {name}: {e}")
            raise ValueError("Category name already in use") from e
        return self.get_by_id(record_id)

    def get_by_id(self, record_id: str):
        result = self.db.execute_query("SELECT * FROM service_categories WHERE id = ?", (record_id,))
        return self._to_dict(result[0]) if result else None

    def get_active(self):
        rows = self.db.execute_query(
            "SELECT * FROM service_categories WHERE is_active = 1 ORDER BY display_order, name"
        )
        return [self._to_dict(r) for r in rows]

    def get_all(self):
        rows = self.db.execute_query("SELECT * FROM service_categories ORDER BY display_order, name")
        return [self._to_dict(r) for r in rows]

    def update(self, record_id: str, **fields):
        unknown = set(fields) - set(self.FIELDS)
        if unknown:
            raise ValueError(f"Unknown category fields: {', '.join(sorted(unknown))}")
        if not fields:
            return self.get_by_id(record_id)
        if 'is_active' in fields:
            fields['is_active'] = int(bool(fields['is_active']))
        fields['updated_at'] = now_timestamp()
        updates = ", ".join(f"{name} = ?" for name in fields)
        try:
            changed = self.db.execute_update(
                f"UPDATE service_categories SET {updates} WHERE id = ?", tuple(fields.values()) + (record_id,)
            )
        except sqlite3.IntegrityError as e:
            self.db.logger.error(f"Failed to update service category {record_id}: {e}")
            raise ValueError("Category name already in use") from e
        return self.get_by_id(record_id) if changed else None

    def delete(self, record_id: str):
        """
        Delete a category. Categories that still hold services are refused.

        Raises:
            ValueError: services still reference the category
        """
        try:
            return self.db.execute_update("DELETE FROM service_categories WHERE id = ?", (record_id,)) > 0
        except sqlite3.IntegrityError as e:
            self.db.logger.error(f"Failed to delete service category {record_id}: {e}")
            raise ValueError("Category still has services") from e


class Service:
    """
    Catalogue entry for something the shop sells, with a popularity score
    bumped each time it appears on a visit.
    """

    FIELDS = ('name', 'description', 'price', 'duration_minutes', 'image_url', 'category_id', 'is_active')

    def __init__(self, db_manager: DatabaseManager):
        self.db = db_manager

    @staticmethod
    def _to_dict(row):
        if row is None:
            return None
        service = dict(row)
        service['is_active'] = bool(service['is_active'])
        return service

    def create(self, name: str, description: str, price: float, duration_minutes: int, category_id: str,
               image_url: str = None, is_active: bool = True):
        """
        Add a service to the catalogue.

        Raises:
            ValueError: missing name, negative price, duration under a minute or unknown category
        """
        if not name or not name.strip():
            raise ValueError("Service name is required")
        if price < 0:
            raise ValueError("Price cannot be negative")
        if duration_minutes < 1:
            raise ValueError("Duration must be at least 1 minute")
        record_id = new_object_id()
        try:
            self.db.execute_update(
                """
                INSERT INTO services (id, name, description, price, duration_minutes, image_url,
                                      category_id, is_active)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (record_id, name.strip(), description, price, duration_minutes, image_url,
                 category_id, int(is_active)),
            )
        except sqlite3.IntegrityError as e:
            self.db.logger.error(f"Failed to create service {name}: {e}")
            raise ValueError(f"Unknown service category: {category_id}") from e
        return self.get_by_id(record_id)

    def get_by_id(self, record_id: str):
        if not record_id:
            return None
        result = self.db.execute_query("SELECT * FROM services WHERE id = ?", (record_id,))
        return self._to_dict(result[0]) if result else None

    def list(self, page: int = 1, limit: int = DEFAULT_PAGE_SIZE, category_id: str = None,
             active_only: bool = False):
        """
        List services, most popular first.
        """
        page = max(page, 1)
        clauses, params = [], []
        if category_id:
            clauses.append("category_id = ?")
            params.append(category_id)
        if active_only:
            clauses.append("is_active = 1")
        where = f"WHERE {' AND '.join(clauses)}" if clauses else ""
        rows = self.db.execute_query(
            f"SELECT * FROM services {where} ORDER BY popularity_score DESC, name LIMIT ? OFFSET ?",
            tuple(params) + (limit, (page - 1) * limit),
        )
        total = self.db.execute_query(f"SELECT COUNT(*) AS count FROM services {where}", tuple(params))[0]['count']
        return _page([self._to_dict(r) for r in rows], total, page, limit)

    def get_by_category(self, category_id: str, active_only: bool = True):
        query = "SELECT * FROM services WHERE category_id = ?"
        if active_only:
            query += " AND is_active = 1"
        rows = self.db.execute_query(query + " ORDER BY popularity_score DESC, name", (category_id,))
        return [self._to_dict(r) for r in rows]

    def update(self, record_id: str, **fields):
        unknown = set(fields) - set(self.FIELDS)
        if unknown:
            raise ValueError(f"Unknown service fields: {', '.join(sorted(unknown))}")
        if not fields:
            return self.get_by_id(record_id)
        if 'is_active' in fields:
            fields['is_active'] = int(bool(fields['is_active']))
        fields['updated_at'] = now_timestamp()
        updates = ", ".join(f"{name} = ?" for name in fields)
        try:
            changed = self.db.execute_update(
                f"UPDATE services SET {updates} WHERE id = ?", tuple(fields.values()) + (record_id,)
            )
        except sqlite3.IntegrityError as e:
            self.db.logger.error(f"Failed to update service {record_id}: {e}")
            raise ValueError("Invalid service values") from e
        return self.get_by_id(record_id) if changed else None

    def increment_popularity(self, record_id: str, amount: int = 1):
        """
        Raises:
            LookupError: service not found
        """
        changed = self.db.execute_update(
            "UPDATE services SET popularity_score = popularity_score + ? WHERE id = ?", (amount, record_id)
        )
        if not changed:
            raise LookupError(f"Service not found: {record_id}")
        return self.get_by_id(record_id)

    def delete(self, record_id: str):
        return self.db.execute_update("DELETE FROM services WHERE id = ?", (record_id,)) > 0


class Visit:
    """
    Visit model for database operations.
    """

    FIELDS = ('services', 'total_price', 'barber', 'notes', 'visit_date')

    def __init__(self, db_manager: DatabaseManager):
        self.db = db_manager

    @staticmethod
    def _to_dict(row):
        if row is None:
            return None
        visit = dict(row)
        visit['services'] = json.loads(visit.get('services') or '[]')
        visit['reward_redeemed'] = bool(visit['reward_redeemed'])
        return visit

    def create(self, client_id: str, services, total_price: float, barber: str, visit_number: int,
               notes: str = None, visit_date=None, reward_redeemed: bool = False,
               redeemed_reward_id: str = None):
        """
        Insert a visit record and return it.
        """
        record_id = new_object_id()
        query = """
            INSERT INTO visits (id, client_id, visit_date, services, total_price, barber, notes,
                                reward_redeemed, redeemed_reward_id, visit_number)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
        """
        params = (
            record_id, client_id,
            _as_timestamp(visit_date) if visit_date else now_timestamp(),
            json.dumps(list(services or [])), total_price, barber, notes,
            int(reward_redeemed), redeemed_reward_id, visit_number,
        )
        self.db.execute_update(query, params)
        return self.get_by_id(record_id)

    def get_by_id(self, record_id: str):
        result = self.db.execute_query("SELECT * FROM visits WHERE id = ?", (record_id,))
        return self._to_dict(result[0]) if result else None

    def get_by_client(self, client_id: str, page: int = 1, limit: int = DEFAULT_PAGE_SIZE):
        """
        Visits of one client, most recent first.
        """
        page = max(page, 1)
        rows = self.db.execute_query(
            """
            SELECT * FROM visits WHERE client_id = ?
            ORDER BY visit_date DESC, visit_number DESC LIMIT ? OFFSET ?
            """,
            (client_id, limit, (page - 1) * limit),
        )
        total = self.db.execute_query(
            "SELECT COUNT(*) AS count FROM visits WHERE client_id = ?", (client_id,)
        )[0]['count']
        return _page([self._to_dict(r) for r in rows], total, page, limit)

    def get_by_date_range(self, start_date, end_date, page: int = 1, limit: int = DEFAULT_PAGE_SIZE):
        page = max(page, 1)
        start, end = _as_timestamp(start_date), _as_timestamp(end_date, end_of_day=True)
        rows = self.db.execute_query(
            """
            SELECT * FROM visits WHERE visit_date BETWEEN ? AND ?
            ORDER BY visit_date DESC LIMIT ? OFFSET ?
            """,
            (start, end, limit, (page - 1) * limit),
        )
        total = self.db.execute_query(
            "SELECT COUNT(*) AS count FROM visits WHERE visit_date BETWEEN ? AND ?", (start, end)
        )[0]['count']
        return _page([self._to_dict(r) for r in rows], total, page, limit)

    def update(self, record_id: str, **fields):
        """
        Update a visit. Changing the services recomputes total_price
        unless a total is passed alongside.

        Returns:
            The updated visit, or None if it does not exist
        """
        unknown = set(fields) - set(self.FIELDS)
        if unknown:
            raise ValueError(f"Unknown visit fields: {', '.join(sorted(unknown))}")
        if fields.get('total_price') is None:
            fields.pop('total_price', None)
        if not fields:
            return self.get_by_id(record_id)

        if 'services' in fields:
            services = list(fields['services'] or [])
            if services and fields.get('total_price') is None:
                fields['total_price'] = sum(float(s.get('price', 0)) for s in services)
            fields['services'] = json.dumps(services)
        if fields.get('visit_date') is not None:
            fields['visit_date'] = _as_timestamp(fields['visit_date'])

        updates = ", ".join(f"{name} = ?" for name in fields)
        try:
            changed = self.db.execute_update(
                f"UPDATE visits SET {updates} WHERE id = ?", tuple(fields.values()) + (record_id,)
            )
        except sqlite3.IntegrityError as e:
            self.db.logger.error(f"Failed to update visit {record_id}: {e}")
            raise ValueError("Invalid visit values") from e
        return self.get_by_id(record_id) if changed else None

    def list(self, page: int = 1, limit: int = DEFAULT_PAGE_SIZE):
        """
        All visits, most recent first.
        """
        page = max(page, 1)
        rows = self.db.execute_query(
            "SELECT * FROM visits ORDER BY visit_date DESC, created_at DESC LIMIT ? OFFSET ?",
            (limit, (page - 1) * limit),
        )
        return _page([self._to_dict(r) for r in rows], self.count(), page, limit)

    def delete(self, record_id: str):
        return self.db.execute_update("DELETE FROM visits WHERE id = ?", (record_id,)) > 0

    def count(self):
        return self.db.execute_query("SELECT COUNT(*) AS count FROM visits")[0]['count']
