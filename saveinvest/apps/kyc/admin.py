from django.contrib import admin
from .models import KycDocument


@admin.register(KycDocument)
class KycDocumentAdmin(admin.ModelAdmin):
    list_display = (
        "user",
        "pan_verified",
        "aadhaar_verified",
        "liveness_verified",
        "face_matched",
        "bank_verified",
        "updated_at",
    )
    list_filter = ("pan_verified", "aadhaar_verified", "liveness_verified", "bank_verified")
    search_fields = ("user__mobile", "pan_number")
    exclude = ("aadhaar_encrypted", "aadhaar_hash")
    readonly_fields = ("liveness_score", "verified_at", "provider_data")
