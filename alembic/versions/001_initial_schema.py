"""Initial schema — agendamentos, usuarios, bloqueios_horarios, audit_log.

Revision ID: 001
Revises: None
Create Date: 2026-10-19
"""
from __future__ import annotations

from typing import Union

import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, tuple[str, ...], None] = None
depends_on: Union[str, tuple[str, ...], None] = None

ACTIVE_STATUSES = "status IN ('confirmed', 'pending_confirmation', 'reschedule_suggested')"


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column("id", postgresql.UUID(as_uuid=True), server_default=sa.text("gen_random_uuid()"), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
    ]


def upgrade() -> None:
    # ── Standalone tables (no FKs) ─────────────────────────────────────

    op.create_table(
        "audit_log",
        sa.Column("event_type", sa.String(100), nullable=False),
        sa.Column("appointment_id", postgresql.UUID(as_uuid=True)),
        sa.Column("actor_id", sa.String(100)),
        sa.Column("actor_role", sa.String(50)),
        sa.Column("data", postgresql.JSONB(astext_type=sa.Text())),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id", name="pk_audit_log"),
    )
    op.create_index("ix_audit_log_event_type", "audit_log", ["event_type"])
    op.create_index("ix_audit_log_appointment_id", "audit_log", ["appointment_id"])

    op.create_table(
        "usuarios",
        sa.Column("username", sa.String(100), nullable=False),
        sa.Column("password", sa.String(255), nullable=False, comment="bcrypt hash"),
        sa.Column("role", sa.String(20), nullable=False),
        sa.Column("cd", sa.String(50), nullable=False),
        sa.Column("primeira_senha", sa.Boolean(), nullable=False),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id", name="pk_usuarios"),
    )
    op.create_index("ix_usuarios_username", "usuarios", ["username"], unique=True)

    op.create_table(
        "agendamentos",
        sa.Column("empresa", sa.String(255), nullable=False),
        sa.Column("email", sa.String(255), nullable=False),
        sa.Column("telefone", sa.String(30), nullable=False),
        sa.Column("nota_fiscal", sa.String(100), nullable=False),
        sa.Column("numero_pedido", sa.String(100), nullable=False),
        sa.Column("volumes_paletes", sa.String(500)),
        sa.Column("valor_nota_fiscal", sa.Numeric(12, 2)),
        sa.Column("arquivo_nota_fiscal", sa.String(500), comment="Uploaded invoice reference"),
        sa.Column("centro_distribuicao", sa.String(50), nullable=False),
        sa.Column("data_entrega", sa.Date(), nullable=False),
        sa.Column("horario_entrega", sa.String(5), nullable=False, comment="Slot start, HH:MM"),
        sa.Column("status", sa.String(30), nullable=False),
        sa.Column("data_solicitacao", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.Column("confirmado_por", sa.String(100)),
        sa.Column("observacoes", sa.Text()),
        sa.Column("status_entrega", sa.String(30)),
        sa.Column("data_confirmacao_entrega", sa.DateTime(timezone=True)),
        sa.Column("confirmado_entrega_por", sa.String(100)),
        sa.Column("observacoes_entrega", sa.Text()),
        sa.Column("observacoes_detalhadas", sa.Text()),
        sa.Column("horario_chegada", sa.String(5)),
        sa.Column("entregue_no_horario", sa.Boolean()),
        sa.Column("transportador_informou", sa.Boolean()),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id", name="pk_agendamentos"),
    )
    op.create_index("ix_agendamentos_centro_distribuicao", "agendamentos", ["centro_distribuicao"])
    op.create_index("ix_agendamentos_status", "agendamentos", ["status"])
    op.create_index("ix_agendamentos_cd_data", "agendamentos", ["centro_distribuicao", "data_entrega"])
    op.create_index(
        "uq_agendamentos_slot_ativo",
        "agendamentos",
        ["centro_distribuicao", "data_entrega", "horario_entrega"],
        unique=True,
        postgresql_where=sa.text(ACTIVE_STATUSES),
    )

    # ── Tables with FKs ──────────────────────────────────────────────

    op.create_table(
        "bloqueios_horarios",
        sa.Column("centro_distribuicao", sa.String(50), nullable=False),
        sa.Column("data_bloqueio", sa.Date(), nullable=False),
        sa.Column("horario_inicio", sa.String(5), nullable=False),
        sa.Column("horario_fim", sa.String(5), nullable=False),
        sa.Column("motivo", sa.String(500), nullable=False),
        sa.Column("criado_por", sa.String(100)),
        sa.Column("agendamento_id", postgresql.UUID(as_uuid=True)),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id", name="pk_bloqueios_horarios"),
        sa.ForeignKeyConstraint(
            ["agendamento_id"],
            ["agendamentos.id"],
            name="fk_bloqueios_horarios_agendamento_id_agendamentos",
            ondelete="SET NULL",
        ),
    )
    op.create_index("ix_bloqueios_cd_data", "bloqueios_horarios", ["centro_distribuicao", "data_bloqueio"])


def downgrade() -> None:
    # Reverse order of creation (respecting FK dependencies)
    op.drop_table("bloqueios_horarios")
    op.drop_index("uq_agendamentos_slot_ativo", table_name="agendamentos")
    op.drop_table("agendamentos")
    op.drop_table("usuarios")
    op.drop_table("audit_log")
