"""
History of evaluated opportunities and executions.
Uses SQLite for simplicity and persistence.

Recording is fire-and-forget: any error while recording is logged and never
interrupts a trading cycle.
"""

from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional
import json

from sqlalchemy import create_engine, Column, String, Float, DateTime, Integer, Text, Boolean
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import declarative_base, sessionmaker

from src.config import BotConfig
from src.models import ArbOpportunity, ExecutionResult
from src.logger import get_logger


logger = get_logger("database")

Base = declarative_base()

STATS_ROW_ID = 1


class OpportunityTable(Base):
    """One row per evaluation cycle."""

    __tablename__ = "arb_opportunities"

    id = Column(Integer, primary_key=True, autoincrement=True)
    timestamp = Column(DateTime, default=datetime.utcnow, index=True)

    found = Column(Boolean, default=False)
    is_viable = Column(Boolean, default=False)
    profit_percent = Column(Float, default=0.0)

    polymarket_price = Column(Float, default=0.0)
    probo_price = Column(Float, default=0.0)
    polymarket_qty = Column(Float, default=0.0)
    probo_qty = Column(Float, default=0.0)
    reason = Column(String, nullable=True)

    executed = Column(Boolean, default=False)
    polymarket_order_id = Column(String, nullable=True)
    probo_order_id = Column(String, nullable=True)
    success = Column(Boolean, nullable=True)

    execution_json = Column(Text, nullable=True)


class ArbStatsTable(Base):
    """Running aggregate over all recorded opportunities."""

    __tablename__ = "arb_stats"

    id = Column(Integer, primary_key=True)

    total_opportunities_found = Column(Integer, default=0)
    total_executed = Column(Integer, default=0)
    total_successful = Column(Integer, default=0)
    total_failed = Column(Integer, default=0)

    avg_profit_percent = Column(Float, default=0.0)
    highest_profit_percent = Column(Float, default=0.0)
    total_profit = Column(Float, default=0.0)

    last_updated = Column(DateTime, default=datetime.utcnow)


def _order_json(result: ExecutionResult) -> str:
    def leg(order):
        return {
            "success": order.success,
            "order_id": order.order_id,
            "error": order.error,
            "exchange_response": order.exchange_response,
        }

    return json.dumps(
        {
            "timestamp": result.timestamp.isoformat(),
            "polymarket_order": leg(result.polymarket_order),
            "probo_order": leg(result.probo_order),
            "opportunity": result.opportunity.to_dict(),
        },
        default=str,
    )


class Database:
    """Database manager for arbitrage history."""

    def __init__(self, db_path: Path):
        self.db_path = Path(db_path)

        # Ensure directory exists
        self.db_path.parent.mkdir(parents=True, exist_ok=True)

        # Create engine
        db_url = f"sqlite:///{self.db_path}"
        self.engine = create_engine(db_url, echo=False)

        # Create session factory
        self.Session = sessionmaker(bind=self.engine)

        # Initialize database
        Base.metadata.create_all(self.engine)

        logger.info(f"Database initialized at {self.db_path}")

    def _get_stats_row(self, session) -> ArbStatsTable:
        stats = session.get(ArbStatsTable, STATS_ROW_ID)
        if stats is None:
            stats = ArbStatsTable(
                id=STATS_ROW_ID,
                total_opportunities_found=0,
                total_executed=0,
                total_successful=0,
                total_failed=0,
                avg_profit_percent=0.0,
                highest_profit_percent=0.0,
                total_profit=0.0,
            )
            session.add(stats)
        return stats

    def log_opportunity(self, opportunity: ArbOpportunity, executed: bool = False) -> None:
        """Record an evaluated opportunity and update the running averages."""
        try:
            with self.Session() as session:
                profit = float(opportunity.profit_percent)
                session.add(OpportunityTable(
                    timestamp=datetime.utcnow(),
                    found=opportunity.found,
                    is_viable=opportunity.is_viable,
                    profit_percent=profit,
                    polymarket_price=float(opportunity.polymarket_price),
                    probo_price=float(opportunity.probo_price),
                    polymarket_qty=float(opportunity.polymarket_qty),
                    probo_qty=float(opportunity.probo_qty),
                    reason=opportunity.reason,
                    executed=executed,
                ))

                stats = self._get_stats_row(session)
                stats.total_opportunities_found += 1
                count = stats.total_opportunities_found
                stats.avg_profit_percent = (
                    stats.avg_profit_percent * (count - 1) + profit
                ) / count
                if profit > stats.highest_profit_percent:
                    stats.highest_profit_percent = profit
                stats.last_updated = datetime.utcnow()

                session.commit()
        except Exception as e:
            logger.error("Failed to log opportunity", error=str(e), exc_info=True)

    def log_execution(self, result: ExecutionResult) -> None:
        """Attach an execution to the most recent opportunity and update stats."""
        try:
            with self.Session() as session:
                latest = (
                    session.query(OpportunityTable)
                    .order_by(OpportunityTable.id.desc())
                    .first()
                )
                if latest is not None:
                    latest.executed = True
                    latest.polymarket_order_id = result.polymarket_order.order_id
                    latest.probo_order_id = result.probo_order.order_id
                    latest.success = result.fully_filled
                    latest.execution_json = _order_json(result)

                stats = self._get_stats_row(session)
                stats.total_executed += 1
                if result.fully_filled:
                    stats.total_successful += 1
                    stats.total_profit += float(result.opportunity.profit_percent)
                else:
                    stats.total_failed += 1
                stats.last_updated = datetime.utcnow()

                session.commit()
        except Exception as e:
            logger.error("Failed to log execution", error=str(e), exc_info=True)

    def get_stats(self) -> Dict[str, Any]:
        """Get the aggregate statistics."""
        try:
            with self.Session() as session:
                stats = session.get(ArbStatsTable, STATS_ROW_ID)
                if stats is None:
                    return {
                        "total_opportunities_found": 0,
                        "total_executed": 0,
                        "total_successful": 0,
                        "total_failed": 0,
                        "avg_profit_percent": 0.0,
                        "highest_profit_percent": 0.0,
                        "total_profit": 0.0,
                        "last_updated": None,
                    }
                return {
                    "total_opportunities_found": stats.total_opportunities_found,
                    "total_executed": stats.total_executed,
                    "total_successful": stats.total_successful,
                    "total_failed": stats.total_failed,
                    "avg_profit_percent": stats.avg_profit_percent,
                    "highest_profit_percent": stats.highest_profit_percent,
                    "total_profit": stats.total_profit,
                    "last_updated": stats.last_updated,
                }
        except SQLAlchemyError as e:
            logger.error("Failed to get statistics", error=str(e))
            return {}

    def get_recent_opportunities(self, limit: int = 10) -> List[Dict[str, Any]]:
        """Get the most recent opportunities, oldest first."""
        try:
            with self.Session() as session:
                rows = (
                    session.query(OpportunityTable)
                    .order_by(OpportunityTable.id.desc())
                    .limit(limit)
                    .all()
                )
                return [
                    {
                        "timestamp": r.timestamp,
                        "found": r.found,
                        "is_viable": r.is_viable,
                        "profit_percent": r.profit_percent,
                        "polymarket_price": r.polymarket_price,
                        "probo_price": r.probo_price,
                        "polymarket_qty": r.polymarket_qty,
                        "probo_qty": r.probo_qty,
                        "reason": r.reason,
                        "executed": r.executed,
                        "polymarket_order_id": r.polymarket_order_id,
                        "probo_order_id": r.probo_order_id,
                        "success": r.success,
                    }
                    for r in reversed(rows)
                ]
        except SQLAlchemyError as e:
            logger.error("Failed to get recent opportunities", error=str(e))
            return []


# Global database instance
_database: Optional[Database] = None


def get_database(config: BotConfig) -> Database:
    """Get or create the global database instance."""
    global _database
    if _database is None:
        _database = Database(config.database.database_path)
    return _database
