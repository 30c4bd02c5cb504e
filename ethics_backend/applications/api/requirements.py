"""
Requirement files API controller.
"""

from uuid import UUID

import boto3
from botocore.config import Config
from django.conf import settings
from django.http import FileResponse
from django.http import HttpRequest
from django.http import HttpResponseRedirect
from django.shortcuts import get_object_or_404
from ninja_extra import api_controller
from ninja_extra import http_delete
from ninja_extra import http_get

from ethics_backend.applications import services
from ethics_backend.applications.api.applications import socket_id
from ethics_backend.applications.models import Requirement
from ethics_backend.applications.schemas import ApplicationUpdateSchema
from ethics_backend.core.api import BaseAPI
from ethics_backend.core.api import IsAuthenticated
from ethics_backend.core.exceptions import ErrorSchema
from ethics_backend.core.exceptions import NotOwnerError
from ethics_backend.core.roles import is_reviewer


def signed_download_url(file_field, filename: str) -> str:
    """Presigned GET URL on the public S3/MinIO endpoint."""
    s3_client = boto3.client(
        "s3",
        endpoint_url=settings.AWS_S3_PUBLIC_URL,
        aws_access_key_id=settings.AWS_ACCESS_KEY_ID,
        aws_secret_access_key=settings.AWS_SECRET_ACCESS_KEY,
        region_name=getattr(settings, "AWS_S3_REGION_NAME", "us-east-1"),
        config=Config(signature_version="s3v4"),
    )
    return s3_client.generate_presigned_url(
        "get_object",
        Params={
            "Bucket": settings.AWS_STORAGE_BUCKET_NAME,
            "Key": file_field.name,
            "ResponseContentDisposition": f'attachment; filename="{filename}"',
        },
        ExpiresIn=3600,
    )


@api_controller("/requirements", tags=["Requirements"], permissions=[IsAuthenticated])
class RequirementController(BaseAPI):
    @http_get(
        "/{requirement_id}/download",
        response={403: ErrorSchema, 404: ErrorSchema},
        url_name="requirements_download",
    )
    def download_requirement(self, request: HttpRequest, requirement_id: UUID):
        requirement = get_object_or_404(Requirement.objects.select_related("app_profile"), id=requirement_id)
        if not requirement.app_profile.can_be_viewed_by(request.user):
            return NotOwnerError().to_response()

        filename = requirement.file.name.rsplit("/", 1)[-1]
        if getattr(settings, "USE_S3_STORAGE", False) and getattr(settings, "AWS_S3_PUBLIC_URL", None):
            return HttpResponseRedirect(signed_download_url(requirement.file, filename))

        return FileResponse(requirement.file.open("rb"), as_attachment=True, filename=filename)

    @http_delete(
        "/{requirement_id}",
        response={200: ApplicationUpdateSchema, 403: ErrorSchema, 404: ErrorSchema},
        url_name="requirements_delete",
    )
    def delete_requirement(self, request: HttpRequest, requirement_id: UUID):
        """The owning researcher or the review office can remove a requirement."""
        requirement = get_object_or_404(Requirement.objects.select_related("app_profile"), id=requirement_id)
        if requirement.app_profile.user_id != request.user.id and not is_reviewer(request.user):
            return NotOwnerError().to_response()

        result = services.delete_requirement(requirement, socket_id=socket_id(request))
        return 200, ApplicationUpdateSchema(application=result.application, message=result.message)
