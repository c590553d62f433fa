from typing import Optional

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class StatusCardCounts(_CamelModel):
    unassigned_locations: int = 0
    change_requests: int = 0
    open_one_time_invoices: int = 0
    open_recurring_invoices: int = 0
    overdue_one_time_invoices: int = 0
    overdue_recurring_invoices: int = 0
    failed_one_time_invoices: int = 0
    failed_recurring_invoices: int = 0
    open_jobs: int = 0
    recurring_invoice_drafts: int = 0
    one_time_invoice_drafts: int = 0
    unoptimized_routes: int = 0
    open_shifts: int = 0
    incomplete_shifts: int = 0
    clocked_in_staff: int = 0
    staff_on_break: int = 0


class DailySales(_CamelModel):
    date: str
    residential: float
    commercial: float
    total: float


class DailyValue(_CamelModel):
    date: str
    value: float


class DailyNewVsLost(_CamelModel):
    date: str
    new: int
    lost: int
    net: int


class CancelationReason(_CamelModel):
    reason: str
    count: int
    color: str


class ReferralSource(_CamelModel):
    source: str
    count: int


class ChartData(_CamelModel):
    total_sales: list[DailySales]
    active_res_clients: list[DailyValue]
    active_comm_clients: list[DailyValue]
    new_vs_lost_res: list[DailyNewVsLost]
    new_vs_lost_comm: list[DailyNewVsLost]
    avg_res_client_value: list[DailyValue]
    avg_comm_client_value: list[DailyValue]
    res_cancelation_reasons: list[CancelationReason]
    comm_cancelation_reasons: list[CancelationReason]
    referral_sources: list[ReferralSource]


class MetricValues(_CamelModel):
    total_sales_residential: float
    total_sales_commercial: float
    total_sales_total: float
    active_residential_clients: int
    active_commercial_clients: int
    new_res_clients: int
    lost_res_clients: int
    net_res_clients: int
    new_comm_clients: int
    lost_comm_clients: int
    net_comm_clients: int
    avg_res_client_value: float
    avg_comm_client_value: float
    avg_res_clients_per_tech: float
    avg_comm_clients_per_tech: float
    avg_res_yards_per_hour: float
    avg_comm_yards_per_hour: float
    avg_res_yards_per_route: float
    avg_comm_yards_per_route: float
    res_churn_rate: Optional[float] = None
    comm_churn_rate: Optional[float] = None
    client_lifetime_value: Optional[float] = None


class DashboardMetrics(_CamelModel):
    counts: StatusCardCounts
    charts: ChartData
    metrics: MetricValues
