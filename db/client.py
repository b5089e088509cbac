import logging
import time
from contextlib import contextmanager
from typing import Any, Dict, Iterator, List, Optional, Tuple

from neo4j import GraphDatabase, Transaction
from neo4j.exceptions import ServiceUnavailable, SessionExpired, TransientError

from .errors import DatabaseUnavailableError

logger = logging.getLogger(__name__)

RETRYABLE_ERRORS = (ServiceUnavailable, SessionExpired, TransientError)


class Neo4jClient:
    """
    Owns the Neo4j driver and hands out units of work.

    Two ways to talk to the database:

    - ``run_query`` for single statements, retried on transient errors
    - ``transaction()`` for several statements that must commit together

    Example:
        client = Neo4jClient("neo4j+s://xxx.databases.neo4j.io", "neo4j", "secret")
        records, _, _ = client.run_query("MATCH (a:Agent) RETURN a {.*} AS agent")

        with client.transaction() as tx:
            tx.run("MERGE (r:Repository {github_repo_id: $id})", {"id": 1}).consume()
    """

    def __init__(
        self,
        uri: str,
        user: str,
        password: str,
        database: Optional[str] = None,
        max_connection_pool_size: int = 50,
    ):
        """
        Args:
            uri: Neo4j connection URI
            user: Database username
            password: Database password
            database: Database name. None or "neo4j" selects the server default,
                which AuraDB requires.
            max_connection_pool_size: Upper bound on pooled connections. Callers
                beyond the bound wait for a connection to be released.
        """
        self.driver = GraphDatabase.driver(
            uri,
            auth=(user, password),
            max_connection_pool_size=max_connection_pool_size,
        )
        self.database = database if database and database != "neo4j" else None
        self.connected = self._probe(uri)

    def _probe(self, uri: str) -> bool:
        try:
            self.driver.verify_connectivity()
        except Exception as e:
            # The API still starts so webhooks are acknowledged
            logger.warning(
                f"Neo4j at {uri} is unreachable ({e}); queries will fail until it is back. "
                "AuraDB free instances pause when idle, see https://console.neo4j.io"
            )
            return False
        logger.info(f"Connected to Neo4j at {uri}")
        return True

    def close(self) -> None:
        if self.driver:
            self.driver.close()

    def _ensure_connected(self) -> None:
        if self.connected:
            return
        try:
            self.driver.verify_connectivity()
        except Exception as e:
            raise DatabaseUnavailableError(f"Neo4j is not reachable: {e}") from e
        self.connected = True
        logger.info("Reconnected to Neo4j database")

    def run_query(
        self,
        query: str,
        parameters: Optional[Dict[str, Any]] = None,
        max_retries: int = 3,
        write: bool = False,
    ) -> Tuple[List[Any], Any, List[str]]:
        """
        Run one statement in a managed transaction.

        Transient failures are retried with exponential backoff (1s, 2s, ...).

        Returns:
            Tuple of (records, summary, keys)

        Raises:
            DatabaseUnavailableError: the server cannot be reached at all
        """
        self._ensure_connected()

        def work(tx):
            result = tx.run(query, parameters or {})
            records = list(result)
            return records, result.consume(), result.keys()

        attempt = 0
        while True:
            attempt += 1
            try:
                with self.driver.session(database=self.database) as session:
                    execute = session.execute_write if write else session.execute_read
                    return execute(work)
            except RETRYABLE_ERRORS as e:
                if attempt >= max_retries:
                    logger.error(f"Giving up after {attempt} attempt(s): {e}")
                    raise
                delay = 2 ** (attempt - 1)
                logger.warning(f"Transient Neo4j error ({e}), retry {attempt}/{max_retries - 1} in {delay}s")
                time.sleep(delay)

    @contextmanager
    def transaction(self) -> Iterator[Transaction]:
        """
        Explicit unit of work.

        Commits when the block exits normally, rolls back when it raises,
        and always returns the connection to the pool. Not retried.
        """
        self._ensure_connected()
        with self.driver.session(database=self.database) as session:
            tx = session.begin_transaction()
            try:
                yield tx
                tx.commit()
            except BaseException:
                if not tx.closed():
                    try:
                        tx.rollback()
                    except Exception as rollback_error:
                        logger.warning(f"Rollback failed: {rollback_error}")
                raise
            finally:
                if not tx.closed():
                    tx.close()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
