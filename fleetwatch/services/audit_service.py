"""
Audit logging service for login attempts and geofence changes
"""
from typing import Optional
from fastapi import Request
from sqlalchemy.ext.asyncio import AsyncSession
from fleetwatch.models import AuditLog, AuditAction, User, Geofence
from fleetwatch.schemas.user import Actor


class AuditService:
    """Service for creating audit log entries"""

    @staticmethod
    def get_client_ip(request: Request) -> Optional[str]:
        """Extract client IP from request"""
        # Check forwarded headers first (for reverse proxy)
        forwarded = request.headers.get("X-Forwarded-For")
        if forwarded:
            return forwarded.split(",")[0].strip()

        real_ip = request.headers.get("X-Real-IP")
        if real_ip:
            return real_ip

        if request.client:
            return request.client.host

        return None

    @staticmethod
    def get_user_agent(request: Request) -> Optional[str]:
        """Extract user agent from request"""
        return request.headers.get("User-Agent", "")[:500]

    async def log(
        self,
        db: AsyncSession,
        action: AuditAction,
        actor: Optional[Actor] = None,
        user_email: Optional[str] = None,
        request: Optional[Request] = None,
        target_type: Optional[str] = None,
        target_id: Optional[str] = None,
        target_identifier: Optional[str] = None,
        description: Optional[str] = None,
        details: Optional[dict] = None
    ) -> AuditLog:
        """Create an audit log entry"""

        log_entry = AuditLog(
            action=action,
            user_id=actor.id if actor else None,
            user_email=user_email,
            user_role=actor.role.value if actor else None,
            client_id=actor.client_id if actor else None,
            target_type=target_type,
            target_id=target_id,
            target_identifier=target_identifier,
            description=description,
            details=details,
            ip_address=self.get_client_ip(request) if request else None,
            user_agent=self.get_user_agent(request) if request else None
        )

        db.add(log_entry)
        await db.flush()

        return log_entry

    async def log_login(
        self,
        db: AsyncSession,
        user: User,
        request: Request,
        success: bool = True
    ) -> AuditLog:
        """Log a login attempt"""
        action = AuditAction.LOGIN if success else AuditAction.LOGIN_FAILED
        return await self.log(
            db=db,
            action=action,
            actor=Actor.from_user(user) if success else None,
            user_email=user.email,
            request=request,
            target_type="user",
            target_id=user.id,
            target_identifier=user.email,
            description=f"{'Successful' if success else 'Failed'} login attempt"
        )

    async def log_geofence_action(
        self,
        db: AsyncSession,
        action: AuditAction,
        actor: Actor,
        request: Optional[Request],
        geofence: Geofence,
        description: str,
        details: Optional[dict] = None
    ) -> AuditLog:
        """Log a geofence change"""
        return await self.log(
            db=db,
            action=action,
            actor=actor,
            request=request,
            target_type="geofence",
            target_id=geofence.id,
            target_identifier=geofence.name,
            description=description,
            details=details
        )


audit_service = AuditService()
