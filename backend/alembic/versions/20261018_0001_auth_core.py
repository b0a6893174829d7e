from alembic import op


revision = "20261018_0001"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.execute(
        """
        CREATE TABLE IF NOT EXISTS sys_users (
            id VARCHAR(36) PRIMARY KEY,
            username VARCHAR(50) NOT NULL UNIQUE,
            email VARCHAR(255) NOT NULL UNIQUE,
            password VARCHAR(255) NOT NULL,
            name VARCHAR(100) NOT NULL,
            created_at TIMESTAMP WITH TIME ZONE NOT NULL DEFAULT CURRENT_TIMESTAMP,
            updated_at TIMESTAMP WITH TIME ZONE NOT NULL DEFAULT CURRENT_TIMESTAMP
        );
        """
    )

    op.execute(
        """
        CREATE TABLE IF NOT EXISTS sys_user_roles (
            id VARCHAR(36) PRIMARY KEY,
            user_id VARCHAR(36) NOT NULL REFERENCES sys_users(id) ON DELETE CASCADE,
            role VARCHAR(20) NOT NULL,
            created_at TIMESTAMP WITH TIME ZONE NOT NULL DEFAULT CURRENT_TIMESTAMP,
            CONSTRAINT uq_sys_user_roles_user_role UNIQUE (user_id, role)
        );
        """
    )
    op.execute("CREATE INDEX IF NOT EXISTS ix_sys_user_roles_user_id ON sys_user_roles(user_id);")

    op.execute(
        """
        CREATE TABLE IF NOT EXISTS sys_refresh_tokens (
            id SERIAL PRIMARY KEY,
            token VARCHAR(1024) NOT NULL UNIQUE,
            user_id VARCHAR(36) NOT NULL REFERENCES sys_users(id) ON DELETE CASCADE,
            expires_at TIMESTAMP WITH TIME ZONE NOT NULL,
            created_at TIMESTAMP WITH TIME ZONE NOT NULL DEFAULT CURRENT_TIMESTAMP
        );
        """
    )
    op.execute("CREATE INDEX IF NOT EXISTS ix_sys_refresh_tokens_user_id ON sys_refresh_tokens(user_id);")
    op.execute("CREATE INDEX IF NOT EXISTS ix_sys_refresh_tokens_expires_at ON sys_refresh_tokens(expires_at);")


def downgrade() -> None:
    op.execute("DROP TABLE IF EXISTS sys_refresh_tokens;")
    op.execute("DROP TABLE IF EXISTS sys_user_roles;")
    op.execute("DROP TABLE IF EXISTS sys_users;")
