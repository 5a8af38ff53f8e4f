from typing import Optional

import db
from services.calendar_errors import Unauthenticated
from services.calendar_models import TenantContext
from utils.logger import log_error, log_info

# Thin adapter over Supabase Auth. Sign-in, roles and profiles are owned by the
# auth backend; the calendar only needs "who is this and which company".


class AuthService:
    def __init__(self, client=None):
        self._client = client
        self.current_user = None

    @property
    def client(self):
        client = self._client or db.supabase
        if client is None:
            raise RuntimeError("Supabase client is not configured")
        return client

    def sign_in(self, email, password):
        """Sign in with email and password. Returns Response (with .user and .session)."""
        self.client.check_connection()
        try:
            res = self.client.auth.sign_in_with_password({"email": email, "password": password})
        except Exception as e:
            log_error(f"Auth Error: {e}")
            raise
        if not res or not res.user:
            return None
        self.current_user = res.user
        if res.session:
            self.client.set_access_token(res.session.access_token)
        log_info(f"User signed in: {res.user.id}")
        return res

    def sign_out(self):
        """Sign out the current user."""
        try:
            self.client.auth.sign_out()
        except Exception as e:
            log_error(f"Sign Out Error: {e}")
        finally:
            self.current_user = None
            self.client.set_access_token(None)

    def get_session(self):
        """Return the current session object (containing tokens)"""
        try:
            return self.client.auth.get_session()
        except Exception as e:
            log_error(f"Session lookup failed: {e}")
            return None

    def get_access_token(self) -> Optional[str]:
        session = self.get_session()
        return session.access_token if session else None

    def get_user(self):
        """Get cached current user or fetch from session."""
        if self.current_user:
            return self.current_user

        session = self.get_session()
        if session and session.user:
            self.current_user = session.user
            return session.user
        return None

    def get_tenant_context(self) -> TenantContext:
        """Current user and their company, or Unauthenticated."""
        user = self.get_user()
        if not user:
            raise Unauthenticated("no signed-in user")

        res = self.client.table("profiles")\
            .select("company_id")\
            .eq("id", user.id)\
            .limit(1)\
            .execute()
        company_id = res.data[0].get("company_id") if res.data else None
        if not company_id:
            raise Unauthenticated(f"user {user.id} has no company")
        return TenantContext(user_id=user.id, company_id=company_id)


# Singleton Instance
auth_service = AuthService()
