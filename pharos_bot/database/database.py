import sqlite3
import json
from datetime import datetime, timedelta
from typing import Optional, Dict, Any, List


class Database:
    def __init__(self, db_path: str = "database.sqlite3"):
        self.db_path = db_path
        self.init_database()

    def get_connection(self):
        conn = sqlite3.connect(self.db_path)
        conn.row_factory = sqlite3.Row
        return conn

    def init_database(self):
        conn = self.get_connection()
        cursor = conn.cursor()

        try:
            cursor.execute('''
                           CREATE TABLE IF NOT EXISTS accounts (
                               id INTEGER PRIMARY KEY AUTOINCREMENT,
                               address TEXT UNIQUE NOT NULL,
                               proxy TEXT,
                               access_token TEXT,
                               token_expires_at TEXT,
                               created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
                               updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
                           )
                           ''')

            cursor.execute('''
                           CREATE TABLE IF NOT EXISTS statistics (
                               id INTEGER PRIMARY KEY AUTOINCREMENT,
                               account_id INTEGER,
                               action_type TEXT NOT NULL,
                               status TEXT NOT NULL,
                               details TEXT,
                               tx_hash TEXT,
                               timestamp TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
                               FOREIGN KEY (account_id) REFERENCES accounts (id)
                           )
                           ''')

            cursor.execute('''
                           CREATE INDEX IF NOT EXISTS idx_accounts_address
                               ON accounts(address)
                           ''')

            cursor.execute('''
                           CREATE INDEX IF NOT EXISTS idx_statistics_account_id
                               ON statistics(account_id)
                           ''')

            conn.commit()

        except Exception as e:
            print(f"❌ Database initialization error: {e}")
            conn.rollback()
            raise
        finally:
            conn.close()

    def add_account(self, address: str, proxy: Optional[str] = None) -> int:
        conn = self.get_connection()
        cursor = conn.cursor()

        try:
            cursor.execute('SELECT id FROM accounts WHERE address = ?', (address,))
            existing = cursor.fetchone()

            if existing:
                return existing['id']

            cursor.execute('INSERT INTO accounts (address, proxy) VALUES (?, ?)', (address, proxy))

            account_id = cursor.lastrowid
            conn.commit()
            return account_id

        except sqlite3.IntegrityError:
            cursor.execute('SELECT id FROM accounts WHERE address = ?', (address,))
            return cursor.fetchone()['id']
        except Exception as e:
            print(f"❌ Error adding account: {e}")
            conn.rollback()
            raise
        finally:
            conn.close()

    def get_account(self, address: str) -> Optional[Dict[str, Any]]:
        conn = self.get_connection()
        cursor = conn.cursor()

        try:
            cursor.execute('''
                           SELECT id, address, proxy, access_token, token_expires_at
                           FROM accounts WHERE address = ?
                           ''', (address,))

            row = cursor.fetchone()
            return dict(row) if row else None

        finally:
            conn.close()

    def get_all_accounts(self) -> List[Dict[str, Any]]:
        conn = self.get_connection()
        cursor = conn.cursor()

        try:
            cursor.execute('''
                           SELECT id, address, proxy, access_token, token_expires_at
                           FROM accounts
                           ORDER BY id
                           ''')
            return [dict(row) for row in cursor.fetchall()]

        finally:
            conn.close()

    def update_account(self, address: str, **kwargs):
        """Update account columns by keyword"""
        conn = self.get_connection()
        cursor = conn.cursor()

        try:
            fields = []
            values = []
            for key, value in kwargs.items():
                fields.append(f"{key} = ?")
                values.append(value)

            if not fields:
                return

            fields.append("updated_at = ?")
            values.append(datetime.now().isoformat())
            values.append(address)

            query = f"UPDATE accounts SET {', '.join(fields)} WHERE address = ?"
            cursor.execute(query, values)

            conn.commit()

        except Exception as e:
            print(f"❌ Error updating account: {e}")
            conn.rollback()
            raise
        finally:
            conn.close()

    def save_token(self, address: str, access_token: str, expires_in_hours: int = 24):
        """Save access token with expiration time"""
        expires_at = datetime.now() + timedelta(hours=expires_in_hours)
        self.update_account(
            address,
            access_token=access_token,
            token_expires_at=expires_at.isoformat()
        )

    def get_token(self, address: str) -> Optional[str]:
        """Get access token if it has not expired"""
        if not self.is_token_valid(address):
            return None
        return self.get_account(address)['access_token']

    def is_token_valid(self, address: str) -> bool:
        account = self.get_account(address)
        if not account or not account['access_token'] or not account['token_expires_at']:
            return False

        expires_at = datetime.fromisoformat(account['token_expires_at'])
        return datetime.now() < expires_at

    def clear_token(self, address: str):
        self.update_account(
            address,
            access_token=None,
            token_expires_at=None
        )

    def set_proxy(self, address: str, proxy: Optional[str]):
        self.update_account(address, proxy=proxy)

    def remove_all_proxies(self) -> int:
        """Remove all proxies from all accounts"""
        conn = self.get_connection()
        cursor = conn.cursor()

        try:
            cursor.execute('UPDATE accounts SET proxy = NULL')
            affected = cursor.rowcount
            conn.commit()
            return affected

        finally:
            conn.close()

    def add_statistic(self, account_id: Optional[int], action_type: str, status: str,
                      details: Optional[str] = None, tx_hash: Optional[str] = None):
        conn = self.get_connection()
        cursor = conn.cursor()

        try:
            cursor.execute('''
                           INSERT INTO statistics (account_id, action_type, status, details, tx_hash)
                           VALUES (?, ?, ?, ?, ?)
                           ''', (account_id, action_type, status, details, tx_hash))

            conn.commit()

        except Exception as e:
            print(f"❌ Error adding statistic: {e}")
            conn.rollback()
        finally:
            conn.close()

    def get_statistics(self, account_id: Optional[int] = None, limit: int = 100) -> List[tuple]:
        conn = self.get_connection()
        cursor = conn.cursor()

        try:
            if account_id:
                cursor.execute('''
                               SELECT action_type, status, details, tx_hash, timestamp
                               FROM statistics WHERE account_id = ?
                               ORDER BY id DESC
                               LIMIT ?
                               ''', (account_id, limit))
            else:
                cursor.execute('''
                               SELECT a.address, s.action_type, s.status, s.details, s.tx_hash, s.timestamp
                               FROM statistics s
                               LEFT JOIN accounts a ON s.account_id = a.id
                               ORDER BY s.id DESC
                               LIMIT ?
                               ''', (limit,))

            return cursor.fetchall()

        finally:
            conn.close()

    def export_statistics(self, filename: str = "statistics_export.json") -> int:
        """Export statistics to JSON file"""
        stats = self.get_statistics(limit=10000)

        export_data = []
        for row in stats:
            export_data.append({
                'address': row[0],
                'action_type': row[1],
                'status': row[2],
                'details': row[3],
                'tx_hash': row[4],
                'timestamp': row[5]
            })

        with open(filename, 'w', encoding='utf-8') as f:
            json.dump(export_data, f, indent=4)

        return len(export_data)

    def get_account_count(self) -> int:
        conn = self.get_connection()
        cursor = conn.cursor()

        try:
            cursor.execute('SELECT COUNT(*) FROM accounts')
            return cursor.fetchone()[0]

        finally:
            conn.close()

    def get_success_rate(self) -> Dict[str, Any]:
        conn = self.get_connection()
        cursor = conn.cursor()

        try:
            cursor.execute('''
                           SELECT
                               COUNT(*) as total,
                               SUM(CASE WHEN status = 'success' THEN 1 ELSE 0 END) as success,
                               SUM(CASE WHEN status = 'failed' THEN 1 ELSE 0 END) as failed
                           FROM statistics
                           ''')

            row = cursor.fetchone()

            total = row[0]
            success = row[1] or 0
            failed = row[2] or 0

            return {
                'total': total,
                'success': success,
                'failed': failed,
                'success_rate': (success / total * 100) if total > 0 else 0
            }

        finally:
            conn.close()

    def cleanup_old_stats(self, days: int = 30) -> int:
        """Remove statistics older than specified days"""
        conn = self.get_connection()
        cursor = conn.cursor()

        try:
            cursor.execute('''
                           DELETE FROM statistics
                           WHERE timestamp < datetime('now', '-' || ? || ' days')
                           ''', (days,))

            deleted = cursor.rowcount
            conn.commit()
            return deleted

        finally:
            conn.close()
