"""
MySQL connections for the ledger store.

Connections are opened with CLIENT.FOUND_ROWS so UPDATE rowcount reports
matched rows; the compare-and-swap on purchases relies on it.
"""
import pymysql
from pymysql.constants import CLIENT

from ptstudio import config


def get_db_connection() -> pymysql.connections.Connection:
    """New connection with DictCursor rows, one per ledger operation"""
    return pymysql.connect(
        host=config.DB_HOST,
        port=config.DB_PORT,
        user=config.DB_USER,
        password=config.DB_PASSWORD,
        database=config.DB_NAME,
        charset="utf8mb4",
        cursorclass=pymysql.cursors.DictCursor,
        client_flag=CLIENT.FOUND_ROWS,
        autocommit=False,
        connect_timeout=config.DB_CONNECT_TIMEOUT,
        read_timeout=config.DB_READ_TIMEOUT,
        write_timeout=config.DB_WRITE_TIMEOUT,
    )
