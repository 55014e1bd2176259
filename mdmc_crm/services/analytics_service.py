"""
Analytics service - role-scoped reports over leads and campaigns.
"""
import logging
from collections import OrderedDict
from typing import Optional, List
from datetime import datetime, timedelta

from sqlmodel import select
from sqlmodel.ext.asyncio.session import AsyncSession
from sqlalchemy import func, case

from mdmc_crm.core.exceptions import raise_validation_error
from mdmc_crm.core.permissions import Role
from mdmc_crm.repositories.lead_repo import LeadRepository
from mdmc_crm.repositories.campaign_repo import CampaignRepository
from mdmc_crm.repositories.user_repo import UserRepository
from mdmc_crm.models.lead import Lead, LeadStatus, Temperature, FUNNEL_ORDER, CLOSED_STATUSES
from mdmc_crm.models.campaign import Campaign, CampaignStatus
from mdmc_crm.models.user import User
from mdmc_crm.schemas.common import to_naive_utc

logger = logging.getLogger(__name__)

GROUP_BY_CHOICES = ("day", "week", "month")
COMPARISON_METRICS = ("revenue", "leads", "campaigns", "conversions")
SCORE_BANDS = (("0-25", 25), ("26-50", 50), ("51-75", 75), ("76-100", 100))
WIDGET_NAMES = ("leads", "campaigns", "tasks", "performance")


def bucket_key(value: datetime, group_by: str = "day") -> str:
    """Label of the time bucket ``value`` falls into."""
    if group_by == "month":
        return value.strftime("%Y-%m")
    if group_by == "week":
        year, week, _ = value.isocalendar()
        return f"{year}-W{week:02d}"
    return value.date().isoformat()


def score_band(score: int) -> str:
    for label, upper in SCORE_BANDS:
        if score <= upper:
            return label
    return "unknown"


def date_range_clauses(column, start: Optional[datetime] = None, end: Optional[datetime] = None) -> list:
    clauses = []
    if start:
        clauses.append(column >= to_naive_utc(start))
    if end:
        clauses.append(column <= to_naive_utc(end))
    return clauses


def percent_change(before: float, after: float) -> float:
    """Relative change in percent; 0 when there is no baseline."""
    if before > 0:
        return (after - before) / before * 100
    return 0


def _avg(values: List[float]) -> float:
    return sum(values) / len(values) if values else 0


class AnalyticsService:
    """Reporting over the caller's visible leads and campaigns."""

    def __init__(self, session: AsyncSession):
        self.session = session
        self.lead_repo = LeadRepository(session)
        self.campaign_repo = CampaignRepository(session)
        self.user_repo = UserRepository(session)

    @staticmethod
    def _check_group_by(group_by: str) -> None:
        if group_by not in GROUP_BY_CHOICES:
            raise_validation_error(
                f"group_by must be one of: {', '.join(GROUP_BY_CHOICES)}", field="group_by"
            )

    async def _lead_rows(self, user: User, *columns, clauses: list = ()):
        query = select(*columns).where(*self.lead_repo.scope_clauses(user), *clauses)
        return (await self.session.exec(query)).all()

    async def _campaign_rows(self, user: User, *columns, clauses: list = ()):
        query = select(*columns).where(*self.campaign_repo.scope_clauses(user), *clauses)
        return (await self.session.exec(query)).all()

    async def _avg_lead_score(self, user: User, *clauses) -> float:
        query = select(func.avg(Lead.score)).where(*self.lead_repo.scope_clauses(user), *clauses)
        return float((await self.session.exec(query)).one() or 0)

    async def _won_revenue(self, user: User, *clauses) -> dict:
        query = select(
            func.count(Lead.id),
            func.coalesce(func.sum(Lead.conversion_value), 0),
            func.coalesce(func.avg(Lead.conversion_value), 0),
        ).where(*self.lead_repo.scope_clauses(user), Lead.status == LeadStatus.WON.value, *clauses)
        count, total, avg = (await self.session.exec(query)).one()
        return {"total_revenue": float(total), "avg_deal_size": float(avg), "count": count}

    async def dashboard(
        self,
        user: User,
        start_date: Optional[datetime] = None,
        end_date: Optional[datetime] = None,
        group_by: str = "day"
    ) -> dict:
        """Headline numbers, distributions and the lead conversion trend."""
        self._check_group_by(group_by)
        lead_range = date_range_clauses(Lead.created_at, start_date, end_date)
        campaign_range = date_range_clauses(Campaign.created_at, start_date, end_date)

        total_leads = await self.lead_repo.count_scoped(user, *lead_range)
        new_since = start_date or datetime.utcnow() - timedelta(days=30)
        new_leads = await self.lead_repo.count_scoped(
            user, *date_range_clauses(Lead.created_at, new_since, end_date)
        )
        converted = await self.lead_repo.count_scoped(user, *lead_range, Lead.status == LeadStatus.WON.value)

        totals = await self.campaign_repo.totals(user, *campaign_range)
        spend, revenue = totals["total_spent"], totals["total_revenue"]
        roi = (revenue - spend) / spend * 100 if spend > 0 and revenue > 0 else 0

        trend = OrderedDict()
        rows = await self._lead_rows(user, Lead.created_at, Lead.status, clauses=lead_range)
        for created_at, status in sorted(rows, key=lambda r: r[0]):
            bucket = trend.setdefault(bucket_key(created_at, group_by), {"total": 0, "converted": 0})
            bucket["total"] += 1
            bucket["converted"] += status == LeadStatus.WON.value

        return {
            "overview": {
                "leads": {
                    "total": total_leads,
                    "new": new_leads,
                    "converted": converted,
                    "conversion_rate": converted / total_leads * 100 if total_leads else 0,
                    "average_score": await self._avg_lead_score(user, *lead_range)
                },
                "campaigns": {
                    "total": totals["count"],
                    "active": await self.campaign_repo.count_scoped(
                        user, *campaign_range, Campaign.status == CampaignStatus.ACTIVE.value
                    ),
                    "total_spend": spend,
                    "total_revenue": revenue,
                    "roi": roi
                }
            },
            "distributions": {
                "leads_by_status": await self.lead_repo.group_counts(user, "status", *lead_range),
                "leads_by_source": await self.lead_repo.group_counts(user, "source", *lead_range),
                "campaigns_by_status": await self.campaign_repo.group_counts(user, "status", *campaign_range),
                "campaigns_by_type": await self.campaign_repo.group_counts(user, "type", *campaign_range)
            },
            "trends": {
                "lead_conversion": [{"period": key, **values} for key, values in trend.items()],
                "campaign_performance": {
                    "total_impressions": totals["total_impressions"],
                    "total_clicks": totals["total_clicks"],
                    "total_conversions": totals["total_conversions"],
                    "avg_ctr": totals["avg_ctr"],
                    "avg_roas": totals["avg_roas"]
                }
            }
        }

    async def lead_analytics(
        self,
        user: User,
        start_date: Optional[datetime] = None,
        end_date: Optional[datetime] = None,
        group_by: str = "day",
        source: Optional[str] = None,
        status: Optional[str] = None,
        assigned_to=None
    ) -> dict:
        """Lead distributions, funnel, conversion time and trend."""
        self._check_group_by(group_by)
        clauses = date_range_clauses(Lead.created_at, start_date, end_date)
        if source:
            clauses.append(Lead.source == source)
        if status:
            clauses.append(Lead.status == status)
        if assigned_to:
            clauses.append(Lead.assigned_to == assigned_to)

        rows = await self._lead_rows(
            user, Lead.created_at, Lead.status, Lead.score, Lead.genre, Lead.converted_at,
            clauses=clauses
        )

        by_score = {}
        trend = OrderedDict()
        conversion_days = []
        for created_at, lead_status, score, _, converted_at in sorted(rows, key=lambda r: r[0]):
            band = score_band(score)
            by_score[band] = by_score.get(band, 0) + 1

            bucket = trend.setdefault(
                bucket_key(created_at, group_by), {"count": 0, "converted": 0, "scores": []}
            )
            bucket["count"] += 1
            bucket["scores"].append(score)
            if lead_status == LeadStatus.WON.value:
                bucket["converted"] += 1
                if converted_at:
                    conversion_days.append((converted_at - created_at).total_seconds() / 86400)

        by_genre = {}
        for row in rows:
            if row[3]:
                by_genre[row[3]] = by_genre.get(row[3], 0) + 1
        top_genres = sorted(by_genre.items(), key=lambda item: item[1], reverse=True)[:10]

        by_status = await self.lead_repo.group_counts(user, "status", *clauses)
        funnel = [{"status": stage.value, "count": by_status.get(stage.value, 0)} for stage in FUNNEL_ORDER]

        return {
            "summary": {
                "total_leads": len(rows),
                "conversion_time": {
                    "avg_days": _avg(conversion_days),
                    "min_days": min(conversion_days) if conversion_days else 0,
                    "max_days": max(conversion_days) if conversion_days else 0
                }
            },
            "distributions": {
                "by_status": by_status,
                "by_source": await self.lead_repo.group_counts(user, "source", *clauses),
                "by_score": by_score,
                "by_genre": [{"genre": genre, "count": count} for genre, count in top_genres]
            },
            "funnel": funnel,
            "trends": [
                {
                    "period": key,
                    "count": bucket["count"],
                    "converted": bucket["converted"],
                    "avg_score": _avg(bucket["scores"])
                }
                for key, bucket in trend.items()
            ]
        }

    async def campaign_analytics(
        self,
        user: User,
        start_date: Optional[datetime] = None,
        end_date: Optional[datetime] = None,
        group_by: str = "day",
        type: Optional[str] = None,
        status: Optional[str] = None,
        manager_id=None
    ) -> dict:
        """Campaign distributions, performance sums, top performers and trend."""
        self._check_group_by(group_by)
        clauses = date_range_clauses(Campaign.created_at, start_date, end_date)
        if type:
            clauses.append(Campaign.type == type)
        if status:
            clauses.append(Campaign.status == status)
        if manager_id:
            clauses.append(Campaign.manager_id == manager_id)

        totals = await self.campaign_repo.totals(user, *clauses)

        top_query = (
            select(Campaign)
            .where(*self.campaign_repo.scope_clauses(user), *clauses)
            .order_by(Campaign.roas.desc())
            .limit(10)
        )
        top = (await self.session.exec(top_query)).all()

        rows = await self._campaign_rows(
            user, Campaign.created_at, Campaign.budget_spent, Campaign.revenue, Campaign.roas,
            clauses=clauses
        )
        trend = OrderedDict()
        for created_at, spent, revenue, roas in sorted(rows, key=lambda r: r[0]):
            bucket = trend.setdefault(
                bucket_key(created_at, group_by), {"count": 0, "total_spend": 0, "total_revenue": 0, "roas": []}
            )
            bucket["count"] += 1
            bucket["total_spend"] += spent
            bucket["total_revenue"] += revenue
            bucket["roas"].append(roas)

        return {
            "summary": {
                "total_campaigns": totals["count"],
                "performance": {key: value for key, value in totals.items() if key != "count"}
            },
            "distributions": {
                "by_status": await self.campaign_repo.group_counts(user, "status", *clauses),
                "by_type": await self.campaign_repo.group_counts(user, "type", *clauses)
            },
            "top_performers": [
                {
                    "id": campaign.id,
                    "name": campaign.name,
                    "type": campaign.type,
                    "status": campaign.status,
                    "roas": campaign.roas,
                    "revenue": campaign.revenue,
                    "spent": campaign.budget_spent
                }
                for campaign in top
            ],
            "trends": [
                {
                    "period": key,
                    "count": bucket["count"],
                    "total_spend": bucket["total_spend"],
                    "total_revenue": bucket["total_revenue"],
                    "avg_roas": _avg(bucket["roas"])
                }
                for key, bucket in trend.items()
            ]
        }

    async def revenue_analytics(
        self,
        user: User,
        start_date: Optional[datetime] = None,
        end_date: Optional[datetime] = None,
        group_by: str = "month"
    ) -> dict:
        """Won-deal and campaign revenue. Deals are dated by conversion."""
        self._check_group_by(group_by)
        lead_range = date_range_clauses(Lead.converted_at, start_date, end_date)
        campaign_range = date_range_clauses(Campaign.created_at, start_date, end_date)

        won_rows = await self._lead_rows(
            user, Lead.source, Lead.conversion_value, Lead.converted_at,
            clauses=[Lead.status == LeadStatus.WON.value, *lead_range]
        )
        by_source = {}
        trend = OrderedDict()
        for source, value, converted_at in won_rows:
            value = value or 0
            entry = by_source.setdefault(source, {"revenue": 0, "count": 0})
            entry["revenue"] += value
            entry["count"] += 1

        for source, value, converted_at in sorted(
            (r for r in won_rows if r[2] is not None), key=lambda r: r[2]
        ):
            bucket = trend.setdefault(bucket_key(converted_at, group_by), {"revenue": 0, "deals": 0})
            bucket["revenue"] += value or 0
            bucket["deals"] += 1

        campaign_rows = await self._campaign_rows(
            user, Campaign.type, Campaign.revenue, Campaign.budget_spent, clauses=campaign_range
        )
        by_type = {}
        for campaign_type, revenue, spent in campaign_rows:
            entry = by_type.setdefault(campaign_type, {"revenue": 0, "spend": 0, "roas": []})
            entry["revenue"] += revenue
            entry["spend"] += spent
            entry["roas"].append(revenue / spent if spent > 0 else 0)

        totals = await self.campaign_repo.totals(user, *campaign_range)

        return {
            "summary": {
                "leads": await self._won_revenue(user, *lead_range),
                "campaigns": {
                    "total_revenue": totals["total_revenue"],
                    "total_spend": totals["total_spent"],
                    "avg_roas": totals["avg_roas"]
                }
            },
            "distributions": {
                "by_source": sorted(
                    [
                        {
                            "source": source,
                            "revenue": entry["revenue"],
                            "count": entry["count"],
                            "avg_deal_size": entry["revenue"] / entry["count"]
                        }
                        for source, entry in by_source.items()
                    ],
                    key=lambda item: item["revenue"],
                    reverse=True
                ),
                "by_type": sorted(
                    [
                        {
                            "type": campaign_type,
                            "revenue": entry["revenue"],
                            "spend": entry["spend"],
                            "roas": _avg(entry["roas"])
                        }
                        for campaign_type, entry in by_type.items()
                    ],
                    key=lambda item: item["revenue"],
                    reverse=True
                )
            },
            "trends": [
                {
                    "period": key,
                    "revenue": bucket["revenue"],
                    "deals": bucket["deals"],
                    "avg_deal_size": bucket["revenue"] / bucket["deals"]
                }
                for key, bucket in trend.items()
            ]
        }

    async def _metric_value(self, user: User, metric: str, start: datetime, end: datetime) -> dict:
        lead_range = date_range_clauses(Lead.created_at, start, end)
        campaign_range = date_range_clauses(Campaign.created_at, start, end)

        if metric == "revenue":
            lead_revenue = (await self._won_revenue(user, *lead_range))["total_revenue"]
            campaign_revenue = (await self.campaign_repo.totals(user, *campaign_range))["total_revenue"]
            return {
                "value": lead_revenue + campaign_revenue,
                "details": {"lead_revenue": lead_revenue, "campaign_revenue": campaign_revenue}
            }
        if metric == "leads":
            count = await self.lead_repo.count_scoped(user, *lead_range)
            return {"value": count, "details": {"count": count}}
        if metric == "campaigns":
            count = await self.campaign_repo.count_scoped(user, *campaign_range)
            return {"value": count, "details": {"count": count}}
        conversions = await self.lead_repo.count_scoped(user, *lead_range, Lead.status == LeadStatus.WON.value)
        return {"value": conversions, "details": {"conversions": conversions}}

    async def performance_comparison(
        self,
        user: User,
        metric: str = "revenue",
        period1_start: Optional[datetime] = None,
        period1_end: Optional[datetime] = None,
        period2_start: Optional[datetime] = None,
        period2_end: Optional[datetime] = None
    ) -> dict:
        """Compare one metric across two date ranges."""
        if not all((period1_start, period1_end, period2_start, period2_end)):
            raise_validation_error("All period dates are required for comparison")
        if metric not in COMPARISON_METRICS:
            raise_validation_error(
                f"metric must be one of: {', '.join(COMPARISON_METRICS)}", field="metric"
            )

        period1 = await self._metric_value(user, metric, period1_start, period1_end)
        period2 = await self._metric_value(user, metric, period2_start, period2_end)

        return {
            "metric": metric,
            "period1": {"start": period1_start, "end": period1_end, **period1},
            "period2": {"start": period2_start, "end": period2_end, **period2},
            "change": {
                "absolute": period2["value"] - period1["value"],
                "percentage": percent_change(period1["value"], period2["value"])
            }
        }

    async def overview(self, user: User) -> dict:
        """Dashboard landing numbers, recent records and upcoming follow-ups."""
        now = datetime.utcnow()
        today = now.replace(hour=0, minute=0, second=0, microsecond=0)
        open_lead = Lead.status.not_in(CLOSED_STATUSES)

        totals = await self.campaign_repo.totals(user)

        recent_leads = (await self.session.exec(
            self.lead_repo.scoped_query(user).order_by(Lead.created_at.desc()).limit(5)
        )).all()
        recent_campaigns = (await self.session.exec(
            self.campaign_repo.scoped_query(user).order_by(Campaign.created_at.desc()).limit(5)
        )).all()
        upcoming = (await self.session.exec(
            self.lead_repo.scoped_query(user)
            .where(Lead.next_follow_up >= now, Lead.next_follow_up <= now + timedelta(days=7))
            .order_by(Lead.next_follow_up.asc())
            .limit(10)
        )).all()

        return {
            "metrics": {
                "leads": {
                    "total": await self.lead_repo.count_scoped(user),
                    "new_today": await self.lead_repo.count_scoped(user, Lead.created_at >= today),
                    "overdue": await self.lead_repo.count_scoped(user, Lead.next_follow_up < now, open_lead),
                    "hot": await self.lead_repo.count_scoped(
                        user, Lead.temperature == Temperature.HOT.value, open_lead
                    )
                },
                "campaigns": {
                    "active": await self.campaign_repo.count_scoped(
                        user, Campaign.status == CampaignStatus.ACTIVE.value
                    ),
                    "total_spend": totals["total_spent"],
                    "total_revenue": totals["total_revenue"]
                }
            },
            "recent_activity": {
                "leads": list(recent_leads),
                "campaigns": list(recent_campaigns)
            },
            "upcoming_tasks": list(upcoming)
        }

    async def lead_chart(self, user: User, days: int = 7) -> dict:
        """New leads per day for the last ``days`` days, oldest first."""
        today = datetime.utcnow().date()
        first_day = today - timedelta(days=days - 1)
        start = datetime.combine(first_day, datetime.min.time())

        counts = {}
        for created_at in await self._lead_rows(user, Lead.created_at, clauses=[Lead.created_at >= start]):
            day = created_at.date()
            counts[day] = counts.get(day, 0) + 1

        labels, data = [], []
        for offset in range(days):
            day = first_day + timedelta(days=offset)
            labels.append(day.isoformat())
            data.append(counts.get(day, 0))

        return {"labels": labels, "data": data, "total": sum(data)}

    async def quick_actions(self, user: User) -> dict:
        """High-score leads with no interactions, weak active campaigns and overdue follow-ups."""
        now = datetime.utcnow()
        open_lead = Lead.status.not_in(CLOSED_STATUSES)

        candidates = (await self.session.exec(
            self.lead_repo.scoped_query(user)
            .where(Lead.score >= 80, open_lead)
            .order_by(Lead.score.desc())
        )).all()
        needs_attention = [lead for lead in candidates if not lead.interactions][:5]

        weak_campaigns = (await self.session.exec(
            self.campaign_repo.scoped_query(user)
            .where(Campaign.status == CampaignStatus.ACTIVE.value, Campaign.roas < 1.5)
            .order_by(Campaign.roas.asc())
            .limit(5)
        )).all()

        overdue = (await self.session.exec(
            self.lead_repo.scoped_query(user)
            .where(Lead.next_follow_up < now, open_lead)
            .order_by(Lead.next_follow_up.asc())
            .limit(10)
        )).all()

        return {
            "leads_needing_attention": needs_attention,
            "campaigns_needing_review": list(weak_campaigns),
            "overdue_follow_ups": list(overdue)
        }

    async def widgets(self, user: User, names: Optional[List[str]] = None) -> dict:
        """Dashboard widgets by name; all of them when ``names`` is empty."""
        names = names or list(WIDGET_NAMES)
        unknown = sorted(set(names) - set(WIDGET_NAMES))
        if unknown:
            raise_validation_error(f"Unknown widgets: {', '.join(unknown)}", field="widgets")

        now = datetime.utcnow()
        data = {}

        if "leads" in names:
            data["leads"] = {
                "stats": {
                    "total": await self.lead_repo.count_scoped(user),
                    "avg_score": await self._avg_lead_score(user),
                    "converted": await self.lead_repo.count_scoped(user, Lead.status == LeadStatus.WON.value)
                },
                "distribution": await self.lead_repo.group_counts(user, "status")
            }

        if "campaigns" in names:
            totals = await self.campaign_repo.totals(user)
            data["campaigns"] = {
                "stats": {
                    "total": totals["count"],
                    "active": await self.campaign_repo.count_scoped(
                        user, Campaign.status == CampaignStatus.ACTIVE.value
                    ),
                    "total_spend": totals["total_spent"],
                    "total_revenue": totals["total_revenue"]
                },
                "distribution": await self.campaign_repo.group_counts(user, "status")
            }

        if "tasks" in names:
            today = now.replace(hour=0, minute=0, second=0, microsecond=0)
            follow_ups = await self._lead_rows(
                user, Lead.next_follow_up, clauses=[Lead.next_follow_up.is_not(None)]
            )
            data["tasks"] = {
                "overdue": sum(1 for due in follow_ups if due < now),
                "today": sum(1 for due in follow_ups if today <= due < today + timedelta(days=1)),
                "upcoming": sum(1 for due in follow_ups if now < due <= now + timedelta(days=7))
            }

        if "performance" in names:
            rows = await self._lead_rows(
                user, Lead.created_at, Lead.status,
                clauses=[Lead.created_at >= now - timedelta(days=30)]
            )
            days = OrderedDict()
            for created_at, status in sorted(rows, key=lambda r: r[0]):
                day = days.setdefault(bucket_key(created_at), {"leads": 0, "conversions": 0})
                day["leads"] += 1
                day["conversions"] += status == LeadStatus.WON.value
            data["performance"] = [{"date": key, **values} for key, values in days.items()]

        return data

    async def team_performance(self) -> dict:
        """
        Per-member workload and conversions for active non-admin accounts,
        the top converters of the last 30 days and recently updated leads.
        """
        now = datetime.utcnow()
        active = await self.user_repo.list(filters={"is_active": True}, order_by="first_name", order_desc=False)
        members = [member for member in active if member.role != Role.ADMIN.value]
        member_ids = [member.id for member in members]
        won = Lead.status == LeadStatus.WON.value

        lead_counts = {
            user_id: (total, int(conversions or 0))
            for user_id, total, conversions in (await self.session.exec(
                select(Lead.assigned_to, func.count(Lead.id), func.sum(case((won, 1), else_=0)))
                .where(Lead.is_deleted == False, Lead.assigned_to.in_(member_ids))
                .group_by(Lead.assigned_to)
            )).all()
        }
        campaign_counts = dict((await self.session.exec(
            select(Campaign.manager_id, func.count(Campaign.id))
            .where(Campaign.is_archived == False, Campaign.manager_id.in_(member_ids))
            .group_by(Campaign.manager_id)
        )).all())
        recent_wins = {
            user_id: (count, float(revenue))
            for user_id, count, revenue in (await self.session.exec(
                select(Lead.assigned_to, func.count(Lead.id), func.coalesce(func.sum(Lead.conversion_value), 0))
                .where(
                    Lead.is_deleted == False, won, Lead.assigned_to.in_(member_ids),
                    Lead.converted_at >= now - timedelta(days=30)
                )
                .group_by(Lead.assigned_to)
            )).all()
        }

        team_stats = []
        for member in members:
            lead_count, conversions = lead_counts.get(member.id, (0, 0))
            team_stats.append({
                "user_id": member.id,
                "name": member.full_name,
                "email": member.email,
                "role": member.role,
                "lead_count": lead_count,
                "campaign_count": campaign_counts.get(member.id, 0),
                "conversions": conversions
            })

        top_performers = sorted(
            (
                {
                    "user_id": member.id,
                    "name": member.full_name,
                    "role": member.role,
                    "conversion_count": recent_wins.get(member.id, (0, 0.0))[0],
                    "total_revenue": recent_wins.get(member.id, (0, 0.0))[1]
                }
                for member in members
            ),
            key=lambda entry: (-entry["conversion_count"], -entry["total_revenue"], entry["name"])
        )[:5]

        recent_leads = (await self.session.exec(
            select(Lead)
            .where(Lead.is_deleted == False, Lead.updated_at >= now - timedelta(days=7))
            .order_by(Lead.updated_at.desc())
            .limit(10)
        )).all()

        return {
            "team_stats": team_stats,
            "top_performers": top_performers,
            "recent_activity": [
                {
                    "id": lead.id,
                    "name": lead.full_name,
                    "status": lead.status,
                    "assigned_to": lead.assigned_to,
                    "updated_by": lead.updated_by,
                    "updated_at": lead.updated_at
                }
                for lead in recent_leads
            ]
        }
