"""create_learning_tables

Revision ID: 5f3a9c1d7e20
Revises:
Create Date: 2026-10-19 09:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '5f3a9c1d7e20'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


ENUMS = {
    'orgunit_type_enum': ('district', 'school'),
    'orgunit_status_enum': ('active', 'inactive'),
    'cohort_status_enum': ('active', 'future', 'paused', 'archived'),
    'enrollment_status_enum': ('active', 'inactive'),
    'team_status_enum': ('active', 'inactive'),
    'membership_type_enum': ('mentor', 'member'),
    'pathway_assignment_type_enum': ('explicit', 'role_default'),
    'activity_type_enum': (
        'learndash_course',
        'teacher_self_assessment',
        'children_assessment',
        'coaching_session_attendance',
        'observation',
    ),
    'activity_visibility_enum': ('all', 'staff_only'),
    'activity_status_enum': ('active', 'removed'),
    'prereq_type_enum': ('all_of', 'any_of', 'n_of_m'),
    'drip_type_enum': ('fixed_date', 'after_completion_delay'),
    'override_type_enum': ('exempt', 'manual_unlock', 'grace_unlock'),
    'completion_status_enum': ('not_started', 'in_progress', 'complete'),
    'coach_scope_type_enum': ('school', 'team', 'enrollment'),
    'coaching_session_status_enum': ('scheduled', 'attended', 'missed', 'cancelled', 'rescheduled'),
    'coaching_attendance_status_enum': ('unknown', 'attended', 'missed'),
}


def _enum(name: str) -> sa.Enum:
    return sa.Enum(*ENUMS[name], name=name)


def _timestamps() -> list:
    return [
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=True),
    ]


def upgrade() -> None:
    """Upgrade schema - Create learning service tables."""

    op.create_table(
        'hl_orgunit',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('name', sa.String(), nullable=False),
        sa.Column('code', sa.String(), nullable=True),
        sa.Column('orgunit_type', _enum('orgunit_type_enum'), nullable=False),
        sa.Column('parent_orgunit_id', sa.Uuid(), nullable=True),
        sa.Column('status', _enum('orgunit_status_enum'), nullable=True),
        *_timestamps(),
        sa.ForeignKeyConstraint(['parent_orgunit_id'], ['hl_orgunit.id']),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('code'),
    )
    op.create_index('ix_hl_orgunit_parent_orgunit_id', 'hl_orgunit', ['parent_orgunit_id'])

    op.create_table(
        'hl_cohort',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('name', sa.String(), nullable=False),
        sa.Column('code', sa.String(), nullable=True),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('status', _enum('cohort_status_enum'), nullable=True),
        sa.Column('start_date', sa.Date(), nullable=True),
        sa.Column('end_date', sa.Date(), nullable=True),
        sa.Column('timezone', sa.String(), nullable=True),
        sa.Column('district_id', sa.Uuid(), nullable=True),
        sa.Column('settings', sa.JSON(), nullable=True),
        *_timestamps(),
        sa.ForeignKeyConstraint(['district_id'], ['hl_orgunit.id']),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('code'),
    )

    op.create_table(
        'hl_pathway',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('cohort_id', sa.Uuid(), nullable=False),
        sa.Column('name', sa.String(), nullable=False),
        sa.Column('code', sa.String(), nullable=True),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('objectives', sa.Text(), nullable=True),
        sa.Column('syllabus_url', sa.String(), nullable=True),
        sa.Column('featured_image_url', sa.String(), nullable=True),
        sa.Column('avg_completion_time', sa.String(), nullable=True),
        sa.Column('expiration_date', sa.Date(), nullable=True),
        sa.Column('target_roles', sa.JSON(), nullable=True),
        sa.Column('active_status', sa.Boolean(), nullable=True),
        *_timestamps(),
        sa.ForeignKeyConstraint(['cohort_id'], ['hl_cohort.id']),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_hl_pathway_cohort_id', 'hl_pathway', ['cohort_id'])

    op.create_table(
        'hl_enrollment',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('cohort_id', sa.Uuid(), nullable=False),
        sa.Column('user_id', sa.String(), nullable=False),
        sa.Column('display_name', sa.String(), nullable=True),
        sa.Column('email', sa.String(), nullable=True),
        sa.Column('roles', sa.JSON(), nullable=True),
        sa.Column('assigned_pathway_id', sa.Uuid(), nullable=True),
        sa.Column('school_id', sa.Uuid(), nullable=True),
        sa.Column('district_id', sa.Uuid(), nullable=True),
        sa.Column('status', _enum('enrollment_status_enum'), nullable=True),
        sa.Column('enrolled_at', sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
        sa.ForeignKeyConstraint(['cohort_id'], ['hl_cohort.id']),
        sa.ForeignKeyConstraint(['assigned_pathway_id'], ['hl_pathway.id']),
        sa.ForeignKeyConstraint(['school_id'], ['hl_orgunit.id']),
        sa.ForeignKeyConstraint(['district_id'], ['hl_orgunit.id']),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('cohort_id', 'user_id', name='uq_enrollment_cohort_user'),
    )
    op.create_index('ix_hl_enrollment_cohort_id', 'hl_enrollment', ['cohort_id'])
    op.create_index('ix_hl_enrollment_user_id', 'hl_enrollment', ['user_id'])
    op.create_index('ix_hl_enrollment_school_id', 'hl_enrollment', ['school_id'])

    op.create_table(
        'hl_team',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('cohort_id', sa.Uuid(), nullable=False),
        sa.Column('school_id', sa.Uuid(), nullable=True),
        sa.Column('name', sa.String(), nullable=False),
        sa.Column('status', _enum('team_status_enum'), nullable=True),
        *_timestamps(),
        sa.ForeignKeyConstraint(['cohort_id'], ['hl_cohort.id']),
        sa.ForeignKeyConstraint(['school_id'], ['hl_orgunit.id']),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_hl_team_cohort_id', 'hl_team', ['cohort_id'])

    op.create_table(
        'hl_team_membership',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('team_id', sa.Uuid(), nullable=False),
        sa.Column('enrollment_id', sa.Uuid(), nullable=False),
        sa.Column('membership_type', _enum('membership_type_enum'), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(['team_id'], ['hl_team.id']),
        sa.ForeignKeyConstraint(['enrollment_id'], ['hl_enrollment.id']),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('team_id', 'enrollment_id', name='uq_team_membership'),
    )
    op.create_index('ix_hl_team_membership_team_id', 'hl_team_membership', ['team_id'])
    op.create_index('ix_hl_team_membership_enrollment_id', 'hl_team_membership', ['enrollment_id'])

    op.create_table(
        'hl_pathway_assignment',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('enrollment_id', sa.Uuid(), nullable=False),
        sa.Column('pathway_id', sa.Uuid(), nullable=False),
        sa.Column('assignment_type', _enum('pathway_assignment_type_enum'), nullable=True),
        sa.Column('assigned_by', sa.String(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(['enrollment_id'], ['hl_enrollment.id']),
        sa.ForeignKeyConstraint(['pathway_id'], ['hl_pathway.id']),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('enrollment_id', 'pathway_id', name='uq_pathway_assignment'),
    )
    op.create_index('ix_hl_pathway_assignment_enrollment_id', 'hl_pathway_assignment', ['enrollment_id'])
    op.create_index('ix_hl_pathway_assignment_pathway_id', 'hl_pathway_assignment', ['pathway_id'])

    op.create_table(
        'hl_activity',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('cohort_id', sa.Uuid(), nullable=False),
        sa.Column('pathway_id', sa.Uuid(), nullable=False),
        sa.Column('activity_type', _enum('activity_type_enum'), nullable=False),
        sa.Column('title', sa.String(), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('ordering_hint', sa.Integer(), nullable=True),
        sa.Column('weight', sa.Float(), nullable=True),
        sa.Column('external_ref', sa.JSON(), nullable=True),
        sa.Column('visibility', _enum('activity_visibility_enum'), nullable=True),
        sa.Column('status', _enum('activity_status_enum'), nullable=True),
        *_timestamps(),
        sa.ForeignKeyConstraint(['cohort_id'], ['hl_cohort.id']),
        sa.ForeignKeyConstraint(['pathway_id'], ['hl_pathway.id']),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_hl_activity_cohort_id', 'hl_activity', ['cohort_id'])
    op.create_index('ix_hl_activity_pathway_id', 'hl_activity', ['pathway_id'])

    op.create_table(
        'hl_activity_prereq_group',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('activity_id', sa.Uuid(), nullable=False),
        sa.Column('prereq_type', _enum('prereq_type_enum'), nullable=True),
        sa.Column('n_required', sa.Integer(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(['activity_id'], ['hl_activity.id']),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_hl_activity_prereq_group_activity_id', 'hl_activity_prereq_group', ['activity_id'])

    op.create_table(
        'hl_activity_prereq_item',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('group_id', sa.Uuid(), nullable=False),
        sa.Column('prerequisite_activity_id', sa.Uuid(), nullable=False),
        sa.ForeignKeyConstraint(['group_id'], ['hl_activity_prereq_group.id']),
        sa.ForeignKeyConstraint(['prerequisite_activity_id'], ['hl_activity.id']),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_hl_activity_prereq_item_group_id', 'hl_activity_prereq_item', ['group_id'])

    op.create_table(
        'hl_activity_drip_rule',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('activity_id', sa.Uuid(), nullable=False),
        sa.Column('drip_type', _enum('drip_type_enum'), nullable=False),
        sa.Column('release_at_date', sa.DateTime(timezone=True), nullable=True),
        sa.Column('base_activity_id', sa.Uuid(), nullable=True),
        sa.Column('delay_days', sa.Integer(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(['activity_id'], ['hl_activity.id']),
        sa.ForeignKeyConstraint(['base_activity_id'], ['hl_activity.id']),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_hl_activity_drip_rule_activity_id', 'hl_activity_drip_rule', ['activity_id'])

    op.create_table(
        'hl_activity_override',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('enrollment_id', sa.Uuid(), nullable=False),
        sa.Column('activity_id', sa.Uuid(), nullable=False),
        sa.Column('override_type', _enum('override_type_enum'), nullable=False),
        sa.Column('applied_by', sa.String(), nullable=True),
        sa.Column('reason', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(['enrollment_id'], ['hl_enrollment.id']),
        sa.ForeignKeyConstraint(['activity_id'], ['hl_activity.id']),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_hl_activity_override_enrollment_id', 'hl_activity_override', ['enrollment_id'])
    op.create_index('ix_hl_activity_override_activity_id', 'hl_activity_override', ['activity_id'])

    op.create_table(
        'hl_activity_state',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('enrollment_id', sa.Uuid(), nullable=False),
        sa.Column('activity_id', sa.Uuid(), nullable=False),
        sa.Column('completion_percent', sa.Float(), nullable=True),
        sa.Column('completion_status', _enum('completion_status_enum'), nullable=True),
        sa.Column('completed_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('last_computed_at', sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(['enrollment_id'], ['hl_enrollment.id']),
        sa.ForeignKeyConstraint(['activity_id'], ['hl_activity.id']),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('enrollment_id', 'activity_id', name='uq_activity_state'),
    )
    op.create_index('ix_hl_activity_state_enrollment_id', 'hl_activity_state', ['enrollment_id'])
    op.create_index('ix_hl_activity_state_activity_id', 'hl_activity_state', ['activity_id'])

    op.create_table(
        'hl_completion_rollup',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('enrollment_id', sa.Uuid(), nullable=False),
        sa.Column('cohort_id', sa.Uuid(), nullable=False),
        sa.Column('pathway_completion_percent', sa.Float(), nullable=True),
        sa.Column('cohort_completion_percent', sa.Float(), nullable=True),
        sa.Column('last_computed_at', sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(['enrollment_id'], ['hl_enrollment.id']),
        sa.ForeignKeyConstraint(['cohort_id'], ['hl_cohort.id']),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('enrollment_id'),
    )
    op.create_index('ix_hl_completion_rollup_cohort_id', 'hl_completion_rollup', ['cohort_id'])

    op.create_table(
        'hl_coach_assignment',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('coach_user_id', sa.String(), nullable=False),
        sa.Column('coach_name', sa.String(), nullable=True),
        sa.Column('coach_email', sa.String(), nullable=True),
        sa.Column('scope_type', _enum('coach_scope_type_enum'), nullable=False),
        sa.Column('scope_id', sa.Uuid(), nullable=False),
        sa.Column('cohort_id', sa.Uuid(), nullable=False),
        sa.Column('effective_from', sa.Date(), nullable=False),
        sa.Column('effective_to', sa.Date(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(['cohort_id'], ['hl_cohort.id']),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_hl_coach_assignment_coach_user_id', 'hl_coach_assignment', ['coach_user_id'])
    op.create_index('ix_hl_coach_assignment_scope_id', 'hl_coach_assignment', ['scope_id'])
    op.create_index('ix_hl_coach_assignment_cohort_id', 'hl_coach_assignment', ['cohort_id'])

    op.create_table(
        'hl_coaching_session',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('cohort_id', sa.Uuid(), nullable=False),
        sa.Column('coach_user_id', sa.String(), nullable=False),
        sa.Column('mentor_enrollment_id', sa.Uuid(), nullable=False),
        sa.Column('session_title', sa.String(), nullable=True),
        sa.Column('meeting_url', sa.String(), nullable=True),
        sa.Column('location', sa.String(), nullable=True),
        sa.Column('session_datetime', sa.DateTime(timezone=True), nullable=True),
        sa.Column('session_status', _enum('coaching_session_status_enum'), nullable=True),
        sa.Column('attendance_status', _enum('coaching_attendance_status_enum'), nullable=True),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('cancelled_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('rescheduled_from_session_id', sa.Uuid(), nullable=True),
        *_timestamps(),
        sa.ForeignKeyConstraint(['cohort_id'], ['hl_cohort.id']),
        sa.ForeignKeyConstraint(['mentor_enrollment_id'], ['hl_enrollment.id']),
        sa.ForeignKeyConstraint(['rescheduled_from_session_id'], ['hl_coaching_session.id']),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_hl_coaching_session_cohort_id', 'hl_coaching_session', ['cohort_id'])
    op.create_index('ix_hl_coaching_session_coach_user_id', 'hl_coaching_session', ['coach_user_id'])
    op.create_index('ix_hl_coaching_session_mentor_enrollment_id', 'hl_coaching_session', ['mentor_enrollment_id'])

    op.create_table(
        'hl_audit_log',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('actor_user_id', sa.String(), nullable=True),
        sa.Column('cohort_id', sa.Uuid(), nullable=True),
        sa.Column('action_type', sa.String(), nullable=False),
        sa.Column('entity_type', sa.String(), nullable=True),
        sa.Column('entity_id', sa.String(), nullable=True),
        sa.Column('before_data', sa.JSON(), nullable=True),
        sa.Column('after_data', sa.JSON(), nullable=True),
        sa.Column('reason', sa.Text(), nullable=True),
        sa.Column('ip_address', sa.String(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_hl_audit_log_actor_user_id', 'hl_audit_log', ['actor_user_id'])
    op.create_index('ix_hl_audit_log_cohort_id', 'hl_audit_log', ['cohort_id'])
    op.create_index('ix_hl_audit_log_action_type', 'hl_audit_log', ['action_type'])
    op.create_index('ix_hl_audit_log_created_at', 'hl_audit_log', ['created_at'])


def downgrade() -> None:
    """Downgrade schema - Drop learning service tables."""
    for table in (
        'hl_audit_log',
        'hl_coaching_session',
        'hl_coach_assignment',
        'hl_completion_rollup',
        'hl_activity_state',
        'hl_activity_override',
        'hl_activity_drip_rule',
        'hl_activity_prereq_item',
        'hl_activity_prereq_group',
        'hl_activity',
        'hl_pathway_assignment',
        'hl_team_membership',
        'hl_team',
        'hl_enrollment',
        'hl_pathway',
        'hl_cohort',
        'hl_orgunit',
    ):
        op.drop_table(table)

    bind = op.get_bind()
    for name in ENUMS:
        _enum(name).drop(bind, checkfirst=True)
