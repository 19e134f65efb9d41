"""
Google Sheets Storage Implementation

DESIGN DECISION: Google Sheets is used as the shared backend because:
1. Every resident can open the household sheet directly
2. No database setup required
3. Built-in backup (Google's infrastructure)
4. Easy to export/migrate later

TRADEOFFS:
- No foreign keys or cascades (we cascade deletes ourselves)
- No transactions (children are written after their parent row and
  deleted before it; every confirmed row is published, even when a later
  step fails)
- No push notifications (we publish change events ourselves)

The implementation follows the abstract interface, so we can swap
to PostgreSQL/SQLite later without changing balance logic.
"""

import json
from collections.abc import Callable
from datetime import datetime
from decimal import Decimal
from typing import Optional
from uuid import UUID

import gspread
from google.oauth2.service_account import Credentials
from tenacity import (
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from household_ledger.config import get_settings
from household_ledger.models.audit import AuditEvent, AuditEventType, AuditSeverity
from household_ledger.models.events import ChangeEvent, Record
from household_ledger.models.records import (
    Contribution,
    Expense,
    NewExpense,
    NewPayment,
    NewResident,
    Payment,
    PaymentAllocation,
    Resident,
)
from household_ledger.services.storage.interface import (
    AuditStorageInterface,
    ConnectionError,
    DuplicateError,
    HouseholdStorageInterface,
    NotFoundError,
    StorageError,
)
from household_ledger.sync.feed import ChangeFeed


RESIDENT_COLUMNS = ["id", "nickname", "created_at"]
EXPENSE_COLUMNS = ["id", "created_at", "item", "price", "care_of", "notes"]
CONTRIBUTION_COLUMNS = ["expense_id", "resident_id"]
PAYMENT_COLUMNS = ["id", "created_at", "paid_by", "received_by", "amount", "notes"]
PAYMENT_ALLOCATION_COLUMNS = ["payment_id", "expense_id"]

AUDIT_COLUMNS = [
    "event_id",
    "timestamp",
    "event_type",
    "severity",
    "entity_type",
    "entity_id",
    "correlation_id",
    "description",
    "details_json",
    "error_message",
    "is_user_action",
]

# Transient API failures (quota, 5xx) are worth another attempt
sheets_retry = retry(
    retry=retry_if_exception_type(gspread.exceptions.APIError),
    stop=stop_after_attempt(3),
    wait=wait_exponential(multiplier=1, min=2, max=10),
    reraise=True,
)


def _cell(row: list, index: int, default: str = "") -> str:
    """Read a cell, tolerating short rows."""
    try:
        return row[index] if row[index] else default
    except IndexError:
        return default


class GoogleSheetsClient:
    """
    Low-level Google Sheets client wrapper.

    Handles authentication and provides retry logic for API calls.
    """

    def __init__(self):
        self._client: Optional[gspread.Client] = None
        self._spreadsheet: Optional[gspread.Spreadsheet] = None
        self._worksheets: dict[str, gspread.Worksheet] = {}
        self._settings = get_settings().google_sheets

    @property
    def settings(self):
        return self._settings

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    def connect(self) -> gspread.Client:
        """
        Establish connection to Google Sheets.

        Uses service account credentials for authentication.
        """
        if self._client is None:
            try:
                scopes = [
                    "https://www.googleapis.com/auth/spreadsheets",
                    "https://www.googleapis.com/auth/drive",
                ]
                credentials = Credentials.from_service_account_file(
                    self._settings.credentials_path,
                    scopes=scopes,
                )
                self._client = gspread.authorize(credentials)
            except FileNotFoundError:
                raise ConnectionError(
                    f"Google credentials file not found: {self._settings.credentials_path}"
                )
            except Exception as e:
                raise ConnectionError(f"Failed to connect to Google Sheets: {e}")

        return self._client

    def get_spreadsheet(self) -> gspread.Spreadsheet:
        """Get the configured spreadsheet."""
        if self._spreadsheet is None:
            client = self.connect()
            try:
                self._spreadsheet = client.open_by_key(
                    self._settings.spreadsheet_id
                )
            except gspread.SpreadsheetNotFound:
                raise ConnectionError(
                    f"Spreadsheet not found: {self._settings.spreadsheet_id}"
                )
        return self._spreadsheet

    def get_worksheet(self, title: str, columns: list[str]) -> gspread.Worksheet:
        """Get or create a worksheet with the given header row."""
        if title not in self._worksheets:
            spreadsheet = self.get_spreadsheet()
            try:
                sheet = spreadsheet.worksheet(title)
            except gspread.WorksheetNotFound:
                sheet = spreadsheet.add_worksheet(
                    title=title,
                    rows=1000,
                    cols=len(columns),
                )
                sheet.append_row(columns)
            self._worksheets[title] = sheet
        return self._worksheets[title]

    def residents_sheet(self) -> gspread.Worksheet:
        return self.get_worksheet(self._settings.residents_sheet_name, RESIDENT_COLUMNS)

    def expenses_sheet(self) -> gspread.Worksheet:
        return self.get_worksheet(self._settings.expenses_sheet_name, EXPENSE_COLUMNS)

    def contributions_sheet(self) -> gspread.Worksheet:
        return self.get_worksheet(self._settings.contributions_sheet_name, CONTRIBUTION_COLUMNS)

    def payments_sheet(self) -> gspread.Worksheet:
        return self.get_worksheet(self._settings.payments_sheet_name, PAYMENT_COLUMNS)

    def payment_allocations_sheet(self) -> gspread.Worksheet:
        return self.get_worksheet(
            self._settings.payment_allocations_sheet_name,
            PAYMENT_ALLOCATION_COLUMNS,
        )

    def audit_sheet(self) -> gspread.Worksheet:
        return self.get_worksheet(self._settings.audit_sheet_name, AUDIT_COLUMNS)


# =============================================================================
# ROW CONVERSION
# =============================================================================

def resident_to_row(resident: Resident) -> list:
    return [str(resident.id), resident.nickname, resident.created_at.isoformat()]


def row_to_resident(row: list) -> Resident:
    return Resident(
        id=int(_cell(row, 0)),
        nickname=_cell(row, 1),
        created_at=datetime.fromisoformat(_cell(row, 2)),
    )


def expense_to_row(expense: Expense) -> list:
    return [
        str(expense.id),
        expense.created_at.isoformat(),
        expense.item,
        str(expense.price),
        str(expense.care_of),
        expense.notes,
    ]


def row_to_expense(row: list) -> Expense:
    return Expense(
        id=int(_cell(row, 0)),
        created_at=datetime.fromisoformat(_cell(row, 1)),
        item=_cell(row, 2),
        price=Decimal(_cell(row, 3, "0")),
        care_of=int(_cell(row, 4)),
        notes=_cell(row, 5),
    )


def contribution_to_row(contribution: Contribution) -> list:
    return [str(contribution.expense_id), str(contribution.resident_id)]


def row_to_contribution(row: list) -> Contribution:
    return Contribution(expense_id=int(_cell(row, 0)), resident_id=int(_cell(row, 1)))


def payment_to_row(payment: Payment) -> list:
    return [
        str(payment.id),
        payment.created_at.isoformat(),
        str(payment.paid_by),
        str(payment.received_by),
        str(payment.amount),
        payment.notes,
    ]


def row_to_payment(row: list) -> Payment:
    return Payment(
        id=int(_cell(row, 0)),
        created_at=datetime.fromisoformat(_cell(row, 1)),
        paid_by=int(_cell(row, 2)),
        received_by=int(_cell(row, 3)),
        amount=Decimal(_cell(row, 4, "0")),
        notes=_cell(row, 5),
    )


def allocation_to_row(allocation: PaymentAllocation) -> list:
    return [str(allocation.payment_id), str(allocation.expense_id)]


def row_to_allocation(row: list) -> PaymentAllocation:
    return PaymentAllocation(payment_id=int(_cell(row, 0)), expense_id=int(_cell(row, 1)))


class GoogleSheetsHouseholdStorage(HouseholdStorageInterface):
    """
    Google Sheets implementation of household storage.

    One worksheet per collection, one record per row, header in row 1.
    Ids are allocated as max(existing id) + 1.
    """

    def __init__(
        self,
        client: Optional[GoogleSheetsClient] = None,
        feed: Optional[ChangeFeed] = None,
    ):
        super().__init__(feed)
        self._client = client or GoogleSheetsClient()

    # -------------------------------------------------------------------------
    # Sheet helpers
    # -------------------------------------------------------------------------

    @staticmethod
    def _data_rows(sheet: gspread.Worksheet) -> list[list]:
        """All non-empty rows below the header."""
        return [row for row in sheet.get_all_values()[1:] if row and row[0]]

    @staticmethod
    def _parse_rows(sheet: gspread.Worksheet, parse: Callable[[list], object]) -> list:
        records = []
        for row in GoogleSheetsHouseholdStorage._data_rows(sheet):
            try:
                records.append(parse(row))
            except Exception:
                continue  # Skip malformed rows
        return records

    @staticmethod
    def _next_id(sheet: gspread.Worksheet) -> int:
        ids = []
        for row in GoogleSheetsHouseholdStorage._data_rows(sheet):
            try:
                ids.append(int(row[0]))
            except ValueError:
                continue
        return max(ids, default=0) + 1

    @staticmethod
    @sheets_retry
    def _append(sheet: gspread.Worksheet, row: list) -> None:
        sheet.append_row(row, value_input_option="RAW")

    @staticmethod
    @sheets_retry
    def _delete_row(sheet: gspread.Worksheet, index: int) -> None:
        sheet.delete_rows(index)

    @classmethod
    def _delete_where(
        cls,
        sheet: gspread.Worksheet,
        match: Callable[[list], bool],
        on_deleted: Callable[[list], None],
    ) -> int:
        """
        Delete every data row matching the predicate.

        Rows are deleted bottom-up so earlier indices stay valid.
        on_deleted is called with each row as soon as its deletion is
        confirmed, so a failure part-way still reports the rows already gone.
        Returns the number of rows deleted.
        """
        all_rows = sheet.get_all_values()
        hits = [
            (idx, row)
            for idx, row in enumerate(all_rows[1:], start=2)  # Row 1 is header
            if row and match(row)
        ]
        for idx, row in reversed(hits):
            cls._delete_row(sheet, idx)
            on_deleted(row)
        return len(hits)

    @staticmethod
    def _collect_deleted(
        events: list[ChangeEvent],
        parse: Callable[[list], Record],
    ) -> Callable[[list], None]:
        """Callback turning each deleted row into a DELETE event."""

        def on_deleted(row: list) -> None:
            try:
                record = parse(row)
            except (ValueError, ArithmeticError):
                return  # Malformed rows never made it into a snapshot
            events.append(ChangeEvent.deleted(record))

        return on_deleted

    def _has_row(self, sheet: gspread.Worksheet, key: str) -> bool:
        return any(row[0] == key for row in self._data_rows(sheet))

    # -------------------------------------------------------------------------
    # Reads
    # -------------------------------------------------------------------------

    async def list_residents(self) -> list[Resident]:
        try:
            return self._parse_rows(self._client.residents_sheet(), row_to_resident)
        except Exception as e:
            raise StorageError(f"Failed to list residents: {e}")

    async def list_expenses(self) -> list[Expense]:
        try:
            return self._parse_rows(self._client.expenses_sheet(), row_to_expense)
        except Exception as e:
            raise StorageError(f"Failed to list expenses: {e}")

    async def list_contributions(self) -> list[Contribution]:
        try:
            return self._parse_rows(self._client.contributions_sheet(), row_to_contribution)
        except Exception as e:
            raise StorageError(f"Failed to list contributors: {e}")

    async def list_payments(self) -> list[Payment]:
        try:
            return self._parse_rows(self._client.payments_sheet(), row_to_payment)
        except Exception as e:
            raise StorageError(f"Failed to list payments: {e}")

    async def list_payment_allocations(self) -> list[PaymentAllocation]:
        try:
            return self._parse_rows(self._client.payment_allocations_sheet(), row_to_allocation)
        except Exception as e:
            raise StorageError(f"Failed to list payment allocations: {e}")

    # -------------------------------------------------------------------------
    # Residents
    # -------------------------------------------------------------------------

    async def create_resident(self, draft: NewResident) -> Resident:
        try:
            sheet = self._client.residents_sheet()
            resident = Resident(
                id=self._next_id(sheet),
                nickname=draft.nickname,
                created_at=datetime.utcnow(),
            )
            self._append(sheet, resident_to_row(resident))
        except Exception as e:
            raise StorageError(f"Failed to add resident: {e}")

        self._notify([ChangeEvent.inserted(resident)])
        return resident

    async def delete_resident(self, resident_id: int) -> bool:
        events: list[ChangeEvent] = []
        try:
            deleted = self._delete_where(
                self._client.residents_sheet(),
                lambda row: row[0] == str(resident_id),
                self._collect_deleted(events, row_to_resident),
            )
        except Exception as e:
            raise StorageError(f"Failed to delete resident: {e}")
        finally:
            self._notify(events)
        return deleted > 0

    # -------------------------------------------------------------------------
    # Expenses
    # -------------------------------------------------------------------------

    async def create_expense(self, draft: NewExpense) -> Expense:
        # Rows confirmed so far are published even if a later append fails
        events: list[ChangeEvent] = []
        try:
            sheet = self._client.expenses_sheet()
            expense = Expense(
                id=self._next_id(sheet),
                created_at=datetime.utcnow(),
                item=draft.item,
                price=draft.price,
                care_of=draft.care_of,
                notes=draft.notes,
            )
            self._append(sheet, expense_to_row(expense))
            events.append(ChangeEvent.inserted(expense))

            contributions_sheet = self._client.contributions_sheet()
            for resident_id in draft.contributor_ids:
                contribution = Contribution(expense_id=expense.id, resident_id=resident_id)
                self._append(contributions_sheet, contribution_to_row(contribution))
                events.append(ChangeEvent.inserted(contribution))
        except Exception as e:
            raise StorageError(f"Failed to add expense: {e}")
        finally:
            self._notify(events)
        return expense

    async def delete_expense(self, expense_id: int) -> bool:
        """Contributions and payment links are deleted before the expense row."""
        key = str(expense_id)
        events: list[ChangeEvent] = []
        try:
            expenses_sheet = self._client.expenses_sheet()
            if not self._has_row(expenses_sheet, key):
                return False
            self._delete_where(
                self._client.contributions_sheet(),
                lambda row: row[0] == key,
                self._collect_deleted(events, row_to_contribution),
            )
            self._delete_where(
                self._client.payment_allocations_sheet(),
                lambda row: len(row) > 1 and row[1] == key,
                self._collect_deleted(events, row_to_allocation),
            )
            self._delete_where(
                expenses_sheet,
                lambda row: row[0] == key,
                self._collect_deleted(events, row_to_expense),
            )
        except Exception as e:
            raise StorageError(f"Failed to delete expense: {e}")
        finally:
            self._notify(events)
        return True

    # -------------------------------------------------------------------------
    # Contributions
    # -------------------------------------------------------------------------

    async def create_contribution(self, expense_id: int, resident_id: int) -> Contribution:
        contribution = Contribution(expense_id=expense_id, resident_id=resident_id)
        try:
            expenses = await self.list_expenses()
            if not any(e.id == expense_id for e in expenses):
                raise NotFoundError(f"Expense not found: {expense_id}")
            if contribution in await self.list_contributions():
                raise DuplicateError(
                    f"Resident {resident_id} already contributes to expense {expense_id}"
                )
            self._append(self._client.contributions_sheet(), contribution_to_row(contribution))
        except (NotFoundError, DuplicateError):
            raise
        except Exception as e:
            raise StorageError(f"Failed to add contributor: {e}")

        self._notify([ChangeEvent.inserted(contribution)])
        return contribution

    async def delete_contribution(self, expense_id: int, resident_id: int) -> bool:
        target = contribution_to_row(Contribution(expense_id=expense_id, resident_id=resident_id))
        events: list[ChangeEvent] = []
        try:
            deleted = self._delete_where(
                self._client.contributions_sheet(),
                lambda row: row[:2] == target,
                self._collect_deleted(events, row_to_contribution),
            )
        except Exception as e:
            raise StorageError(f"Failed to delete contributor: {e}")
        finally:
            self._notify(events)
        return deleted > 0

    # -------------------------------------------------------------------------
    # Payments
    # -------------------------------------------------------------------------

    async def create_payment(self, draft: NewPayment) -> Payment:
        events: list[ChangeEvent] = []
        try:
            if draft.expense_ids:
                known = {e.id for e in await self.list_expenses()}
                missing = [e for e in draft.expense_ids if e not in known]
                if missing:
                    raise NotFoundError(f"Expenses not found: {missing}")

            sheet = self._client.payments_sheet()
            payment = Payment(
                id=self._next_id(sheet),
                created_at=datetime.utcnow(),
                paid_by=draft.paid_by,
                received_by=draft.received_by,
                amount=draft.amount,
                notes=draft.notes,
            )
            self._append(sheet, payment_to_row(payment))
            events.append(ChangeEvent.inserted(payment))

            allocations_sheet = self._client.payment_allocations_sheet()
            for expense_id in draft.expense_ids:
                allocation = PaymentAllocation(payment_id=payment.id, expense_id=expense_id)
                self._append(allocations_sheet, allocation_to_row(allocation))
                events.append(ChangeEvent.inserted(allocation))
        except NotFoundError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to add payment: {e}")
        finally:
            self._notify(events)
        return payment

    async def delete_payment(self, payment_id: int) -> bool:
        key = str(payment_id)
        events: list[ChangeEvent] = []
        try:
            payments_sheet = self._client.payments_sheet()
            if not self._has_row(payments_sheet, key):
                return False
            self._delete_where(
                self._client.payment_allocations_sheet(),
                lambda row: row[0] == key,
                self._collect_deleted(events, row_to_allocation),
            )
            self._delete_where(
                payments_sheet,
                lambda row: row[0] == key,
                self._collect_deleted(events, row_to_payment),
            )
        except Exception as e:
            raise StorageError(f"Failed to delete payment: {e}")
        finally:
            self._notify(events)
        return True


class GoogleSheetsAuditStorage(AuditStorageInterface):
    """
    Google Sheets implementation of audit log storage.

    Audit events are append-only.
    """

    def __init__(self, client: Optional[GoogleSheetsClient] = None):
        self._client = client or GoogleSheetsClient()

    def _row_to_event(self, row: list) -> AuditEvent:
        """Convert a spreadsheet row to an AuditEvent."""
        return AuditEvent(
            event_id=UUID(_cell(row, 0)),
            timestamp=datetime.fromisoformat(_cell(row, 1)),
            event_type=AuditEventType(_cell(row, 2)),
            severity=AuditSeverity(_cell(row, 3)),
            entity_type=_cell(row, 4) or None,
            entity_id=int(_cell(row, 5)) if _cell(row, 5) else None,
            correlation_id=UUID(_cell(row, 6)) if _cell(row, 6) else None,
            description=_cell(row, 7),
            details=json.loads(_cell(row, 8)) if _cell(row, 8) else {},
            error_message=_cell(row, 9) or None,
            is_user_action=_cell(row, 10).lower() == "true",
        )

    @sheets_retry
    async def append_event(self, event: AuditEvent) -> bool:
        """Append an audit event."""
        sheet = self._client.audit_sheet()
        sheet.append_row(event.to_sheets_row(), value_input_option="RAW")
        return True

    def _all_events(self) -> list[AuditEvent]:
        events = []
        for row in self._client.audit_sheet().get_all_values()[1:]:
            if not row or not row[0]:
                continue
            try:
                events.append(self._row_to_event(row))
            except Exception:
                continue
        return events

    async def get_events_by_correlation_id(
        self,
        correlation_id: UUID,
    ) -> list[AuditEvent]:
        """Get events by correlation ID."""
        try:
            events = [e for e in self._all_events() if e.correlation_id == correlation_id]
        except Exception as e:
            raise StorageError(f"Failed to get audit events: {e}")
        events.sort(key=lambda e: e.timestamp)
        return events

    async def get_recent_events(
        self,
        limit: int = 100,
    ) -> list[AuditEvent]:
        """Get recent events, newest first."""
        try:
            events = self._all_events()
        except Exception as e:
            raise StorageError(f"Failed to get audit events: {e}")
        events.sort(key=lambda e: e.timestamp, reverse=True)
        return events[:limit]
