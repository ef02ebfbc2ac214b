"""
Audit tables for finished runs.
"""

from sqlalchemy import Column, String, DateTime, ForeignKey, Integer, Text, JSON
from sqlalchemy.orm import declarative_base, relationship
from sqlalchemy.sql import func

Base = declarative_base()

class PipelineRun(Base):
    __tablename__ = "pipeline_runs"

    id = Column(String(36), primary_key=True)
    pipeline = Column(String(255), nullable=False)
    status = Column(String(50), nullable=False)
    failing_stage = Column(String(255))
    error_kind = Column(String(50))
    failure_reason = Column(Text)
    context = Column(JSON)
    started_at = Column(DateTime)
    finished_at = Column(DateTime)
    created_at = Column(DateTime, server_default=func.now())

    stages = relationship(
        "PipelineStage",
        back_populates="run",
        order_by="PipelineStage.stage_order",
        cascade="all, delete-orphan",
    )

class PipelineStage(Base):
    __tablename__ = "pipeline_stages"

    id = Column(Integer, primary_key=True, autoincrement=True)
    run_id = Column(String(36), ForeignKey("pipeline_runs.id", ondelete="CASCADE"))
    name = Column(String(255), nullable=False)
    target = Column(String(20), nullable=False)
    status = Column(String(50), nullable=False)
    stage_order = Column(Integer, nullable=False)
    exit_code = Column(Integer)
    error_kind = Column(String(50))
    stdout = Column(Text)
    stderr = Column(Text)
    started_at = Column(DateTime)
    finished_at = Column(DateTime)

    run = relationship("PipelineRun", back_populates="stages")
