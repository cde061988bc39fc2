"""
Polarion SDK - High-level client with typed methods.

This layer logs in once, shares the resulting session header across the
session, tracker and test-management service clients, and exposes one
typed method per remote operation. Built on top of the core SoapClient.
"""

import logging
import os
from collections.abc import Callable, Sequence
from typing import Any, TypeVar

from polarion_ws.core.client import (
    DEFAULT_TIMEOUT,
    SESSION_SERVICE,
    TEST_SERVICE,
    TRACKER_SERVICE,
    Service,
    SoapClient,
    service_endpoint,
)
from polarion_ws.core.errors import (
    AuthError,
    CodecError,
    MissingDataError,
    PolarionError,
    ValidationError,
)
from polarion_ws.core.login import SessionHeader, login_with_token
from polarion_ws.core.transport import HttpTransport, Transport
from polarion_ws.core.types import (
    Baseline,
    CustomField,
    Revision,
    TestRecord,
    TestRun,
    WorkItem,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Field selection used when a baseline SQL query is issued without one
DEFAULT_BASELINE_SQL_FIELDS = ("id", "title", "status", "updated")

_FALSE_VALUES = ("0", "false", "no", "off")


def _optional(value: str | None) -> str | None:
    """Empty strings are left off the wire."""
    return value or None


def _fields(fields: Sequence[str] | None) -> list[str] | None:
    return list(fields) if fields else None


class Polarion:
    """
    Polarion web service client.

    Construction performs the login handshake; a failed login raises and
    no client is returned.

    Example:
        with Polarion("https://polarion.example.com", "jdoe", token) as polarion:
            item = polarion.get_work_item_by_id("PROJ", "PROJ-42")
            open_items = polarion.query_work_items("status:open", "id", ["id", "title"])

    """

    def __init__(
        self,
        base_url: str,
        username: str,
        access_token: str,
        timeout: float = DEFAULT_TIMEOUT,
        verify_tls: bool = True,
        ca_file: str | None = None,
        transport: Transport | None = None,
    ):
        """
        Log in and build the service clients.

        Args:
            base_url: Server URL, e.g. https://polarion.example.com
            username: Polarion user
            access_token: Personal access token
            timeout: Request timeout in seconds, applied to every call
            verify_tls: Validate server certificates (disable only for trusted hosts)
            ca_file: Optional CA bundle for self-signed deployments
            transport: Custom transport (defaults to HttpTransport)

        Raises:
            ValidationError: On missing connection parameters or a non-positive timeout
            AuthError: If the login handshake fails

        """
        missing = [
            name
            for name, value in (("base_url", base_url), ("username", username), ("access_token", access_token))
            if not value
        ]
        if missing:
            raise ValidationError(f"Missing connection parameters: {', '.join(missing)}")
        if timeout <= 0:
            raise ValidationError(f"timeout must be greater than zero, got {timeout!r}")

        self.base_url = base_url.rstrip("/")
        self.username = username
        self.timeout = timeout
        self._owns_transport = transport is None
        self.transport: Transport = transport or HttpTransport(verify_tls=verify_tls, ca_file=ca_file)

        try:
            session_id = login_with_token(
                self.transport,
                service_endpoint(self.base_url, SESSION_SERVICE),
                username,
                access_token,
                timeout,
            )
        except AuthError as e:
            logger.error("Login failed for %s at step %s", username, e.step)
            if self._owns_transport:
                self.transport.close()
            raise

        # One header instance for all three clients
        self.session_header = SessionHeader(session_id)

        self.session_client = self._service_client(SESSION_SERVICE)
        self.tracker_client = self._service_client(TRACKER_SERVICE)
        self.test_client = self._service_client(TEST_SERVICE)

    @classmethod
    def from_env(cls, **overrides: Any) -> "Polarion":
        """
        Build a client from POLARION_* environment variables.

        Reads POLARION_URL, POLARION_USERNAME, POLARION_TOKEN,
        POLARION_TIMEOUT, POLARION_VERIFY_TLS and POLARION_CA_FILE. Keyword
        arguments that are not None take precedence.
        """
        verify_env = os.environ.get("POLARION_VERIFY_TLS")
        timeout_env = os.environ.get("POLARION_TIMEOUT")
        try:
            timeout = float(timeout_env) if timeout_env else DEFAULT_TIMEOUT
        except ValueError:
            raise ValidationError(f"POLARION_TIMEOUT must be a number, got {timeout_env!r}")

        settings: dict[str, Any] = {
            "base_url": os.environ.get("POLARION_URL", ""),
            "username": os.environ.get("POLARION_USERNAME", ""),
            "access_token": os.environ.get("POLARION_TOKEN", ""),
            "timeout": timeout,
            "verify_tls": verify_env is None or verify_env.strip().lower() not in _FALSE_VALUES,
            "ca_file": os.environ.get("POLARION_CA_FILE") or None,
        }
        settings.update({k: v for k, v in overrides.items() if v is not None})
        return cls(**settings)

    def _service_client(self, service: Service) -> SoapClient:
        return SoapClient(
            service,
            service_endpoint(self.base_url, service),
            self.transport,
            timeout=self.timeout,
            headers=(self.session_header,),
        )

    @property
    def session_id(self) -> str:
        """The session id obtained at login."""
        return self.session_header.session_id

    def close(self) -> None:
        """Release the transport if this client created it."""
        if self._owns_transport:
            self.transport.close()

    def __enter__(self) -> "Polarion":
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()

    # =========================================================================
    # Call helpers
    # =========================================================================

    def _call(
        self,
        client: SoapClient,
        operation: str,
        context: str,
        params: dict[str, Any] | None = None,
    ) -> list[Any]:
        """Invoke an operation, prefixing any error with the caller's context."""
        try:
            return client.call(operation, params)
        except PolarionError as e:
            raise e.add_context(context)

    @staticmethod
    def _parse(parser: Callable[[dict[str, Any]], T], value: Any, operation: str) -> T:
        if not isinstance(value, dict):
            raise CodecError(f"Unexpected {operation} payload: {value!r}", operation=operation)
        return parser(value)

    def _parse_all(self, parser: Callable[[dict[str, Any]], T], values: list[Any], operation: str) -> list[T]:
        return [self._parse(parser, value, operation) for value in values if value is not None]

    def _single(self, values: list[Any], operation: str, context: str) -> Any:
        if not values or values[0] is None:
            raise MissingDataError(f"{context}: {operation} returned no value", operation=operation)
        return values[0]

    # =========================================================================
    # Session
    # =========================================================================

    def is_logged_in(self) -> bool:
        """
        Check whether the session has an authenticated subject.

        Returns:
            True if logged in, False if the server says the session has no subject

        Raises:
            MissingDataError: If the response carries no answer
            PolarionError: If the check itself failed (transport, codec, fault)

        """
        operation = "hasSubject"
        context = "error checking if logged in"
        value = self._single(self._call(self.session_client, operation, context), operation, context)

        answer = str(value).strip().lower()
        if answer not in ("true", "false"):
            raise CodecError(f"{context}: unexpected {operation} value {value!r}", operation=operation)
        return answer == "true"

    # =========================================================================
    # Work items
    # =========================================================================

    def get_work_item_by_id(self, project_id: str, work_item_id: str) -> WorkItem:
        """
        Get a work item by project and id.

        Args:
            project_id: Project id
            work_item_id: Work item id, e.g. PROJ-42

        Returns:
            WorkItem (check `unresolvable` for ids the server could not find)

        """
        operation = "getWorkItemById"
        context = "error getting work item"
        values = self._call(
            self.tracker_client,
            operation,
            context,
            {"projectId": project_id, "workitemId": work_item_id},
        )
        return self._parse(WorkItem.from_dict, self._single(values, operation, context), operation)

    def query_work_items(
        self,
        query: str,
        sort_field: str = "",
        fields: Sequence[str] | None = None,
    ) -> list[WorkItem]:
        """
        Query work items with Lucene syntax.

        Args:
            query: Lucene query
            sort_field: Field to sort by; required when `fields` is given and
                only sent together with `fields`
            fields: Fields to load on each work item

        Returns:
            Matching WorkItems

        Raises:
            ValidationError: If `fields` is given without `sort_field`

        """
        if fields and not sort_field:
            raise ValidationError(
                "sort_field should be specified if fields parameter is provided",
                operation="queryWorkItems",
            )

        operation = "queryWorkItems"
        values = self._call(
            self.tracker_client,
            operation,
            "error querying work items",
            {
                "query": query,
                # sort only applies to a field-restricted query
                "sort": _optional(sort_field) if fields else None,
                "fields": _fields(fields),
            },
        )
        return self._parse_all(WorkItem.from_dict, values, operation)

    def query_work_items_by_sql(self, sql_query: str, fields: Sequence[str] | None = None) -> list[WorkItem]:
        """Query work items with an SQL statement."""
        operation = "queryWorkItemsBySQL"
        values = self._call(
            self.tracker_client,
            operation,
            "error querying work items by SQL",
            {"sqlQuery": sql_query, "fields": _fields(fields)},
        )
        return self._parse_all(WorkItem.from_dict, values, operation)

    def get_work_items_count(self, query: str) -> int:
        """Count the work items matching a Lucene query."""
        operation = "getWorkItemsCount"
        context = "error counting work items"
        value = self._single(
            self._call(self.tracker_client, operation, context, {"query": query}),
            operation,
            context,
        )
        try:
            return int(str(value).strip())
        except ValueError:
            raise CodecError(f"{context}: unexpected {operation} value {value!r}", operation=operation)

    def query_work_items_in_baseline(
        self,
        baseline_revision: str,
        query: str,
        sort_field: str = "",
        fields: Sequence[str] | None = None,
    ) -> list[WorkItem]:
        """
        Query work items as they were at a baseline revision.

        Args:
            baseline_revision: Repository revision of the baseline
            query: Lucene query
            sort_field: Field to sort by
            fields: Fields to load on each work item

        Returns:
            Matching WorkItems

        """
        operation = "queryWorkItemsInBaseline"
        values = self._call(
            self.tracker_client,
            operation,
            "error querying work items in baseline",
            {
                "query": query,
                "sort": _optional(sort_field),
                "baselineRevision": baseline_revision,
                "fields": _fields(fields),
            },
        )
        return self._parse_all(WorkItem.from_dict, values, operation)

    def query_work_items_in_baseline_by_sql(
        self,
        baseline_revision: str,
        sql_query: str,
        fields: Sequence[str] | None = None,
    ) -> list[WorkItem]:
        """Query work items at a baseline revision with an SQL statement."""
        operation = "queryWorkItemsInBaselineBySQL"
        values = self._call(
            self.tracker_client,
            operation,
            "error querying work items in baseline by SQL",
            {
                "sqlQuery": sql_query,
                "baselineRevision": baseline_revision,
                "fields": list(fields or DEFAULT_BASELINE_SQL_FIELDS),
            },
        )
        return self._parse_all(WorkItem.from_dict, values, operation)

    def get_custom_field(self, work_item_uri: str, key: str) -> CustomField:
        """
        Get one custom field of a work item.

        Args:
            work_item_uri: Work item URI (subterra:...)
            key: Custom field id

        Returns:
            CustomField

        """
        operation = "getCustomField"
        context = "error getting custom field"
        values = self._call(
            self.tracker_client,
            operation,
            context,
            {"workitemURI": work_item_uri, "key": key},
        )
        return self._parse(CustomField.from_dict, self._single(values, operation, context), operation)

    # =========================================================================
    # Baselines and revisions
    # =========================================================================

    def query_baselines(self, query: str, sort_field: str = "") -> list[Baseline]:
        """Query baselines with Lucene syntax."""
        operation = "queryBaselines"
        values = self._call(
            self.tracker_client,
            operation,
            "error querying baselines",
            {"query": query, "sort": _optional(sort_field)},
        )
        return self._parse_all(Baseline.from_dict, values, operation)

    def query_revisions(
        self,
        query: str,
        fields: Sequence[str] | None = None,
        sort_field: str = "",
    ) -> list[Revision]:
        """Query repository revisions with Lucene syntax."""
        operation = "queryRevisions"
        values = self._call(
            self.tracker_client,
            operation,
            "error querying revisions",
            {"query": query, "sort": _optional(sort_field), "fields": _fields(fields)},
        )
        return self._parse_all(Revision.from_dict, values, operation)

    # =========================================================================
    # Test management
    # =========================================================================

    def get_test_case_records(self, test_run_uri: str, test_case_uri: str) -> list[TestRecord]:
        """
        Get the records of one test case within a test run.

        Args:
            test_run_uri: Test run URI
            test_case_uri: Test case (work item) URI

        Returns:
            TestRecords, one per execution

        """
        operation = "getTestCaseRecords"
        values = self._call(
            self.test_client,
            operation,
            "error getting test case records",
            {"testRunUri": test_run_uri, "testCaseUri": test_case_uri},
        )
        return self._parse_all(TestRecord.from_dict, values, operation)

    def query_test_records(self, query: str, sort_field: str = "", limit: int = 0) -> list[TestRecord]:
        """
        Search test records.

        The query has to name the project, so records of a single test run
        can be fetched in one call.

        Args:
            query: Lucene query
            sort_field: Field to sort by
            limit: Maximum number of records (0 for the server default)

        Returns:
            Matching TestRecords

        """
        operation = "searchTestRecords"
        values = self._call(
            self.test_client,
            operation,
            "error querying test records",
            {"query": query, "sort": _optional(sort_field), "limit": limit if limit > 0 else None},
        )
        return self._parse_all(TestRecord.from_dict, values, operation)

    def get_test_run_by_id(self, project_id: str, test_run_id: str) -> TestRun:
        """Get a test run by project and id."""
        operation = "getTestRunById"
        context = "error getting test run"
        values = self._call(
            self.test_client,
            operation,
            context,
            {"project": project_id, "id": test_run_id},
        )
        return self._parse(TestRun.from_dict, self._single(values, operation, context), operation)

    def query_test_runs(
        self,
        query: str,
        sort_field: str = "",
        fields: Sequence[str] | None = None,
    ) -> list[TestRun]:
        """Search test runs, loading only the given fields."""
        operation = "searchTestRunsWithFields"
        values = self._call(
            self.test_client,
            operation,
            "error querying test runs",
            {"query": query, "sort": _optional(sort_field), "fields": _fields(fields)},
        )
        return self._parse_all(TestRun.from_dict, values, operation)
