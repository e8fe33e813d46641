"""Translation between request/response JSON and complaint records."""

# Alternate spellings clients send for the same field.
FIELD_ALIASES = {
    "tracking_id": "tracking_code",
    "trackingId": "tracking_code",
    "trackingCode": "tracking_code",
    "reference_no": "tracking_code",
    "reference_id": "tracking_code",
    "contactEmail": "contact_email",
    "contactPhone": "contact_phone",
    "assignedTo": "assigned_to",
    "department_id": "department",
    "departmentId": "department",
}


def normalize_payload(data):
    normalized = {}
    for key, value in data.items():
        normalized.setdefault(FIELD_ALIASES.get(key, key), value)
    return normalized


def _iso(value):
    return value.isoformat() if value else None


def event_to_dict(event):
    return {
        "kind": event.kind,
        "status": event.status,
        "actor": event.actor_id,
        "assignee": event.assignee_id,
        "note": event.note,
        "timestamp": _iso(event.created_at),
    }


def complaint_to_dict(complaint, include_events=False):
    data = {
        "id": complaint.pk,
        "tracking_code": complaint.tracking_code,
        "title": complaint.title,
        "description": complaint.description,
        "category": complaint.category,
        "department": complaint.department.name if complaint.department_id else None,
        "department_id": complaint.department_id,
        "priority": complaint.priority,
        "status": complaint.status,
        "status_display": complaint.get_status_display(),
        "location": complaint.location,
        "contact_phone": complaint.contact_phone,
        "contact_email": complaint.contact_email,
        "user": complaint.user_id,
        "assigned_to": complaint.assigned_to_id,
        "resolution_note": complaint.resolution_note,
        "resolved_at": _iso(complaint.resolved_at),
        "escalation_count": complaint.escalation_count,
        "escalated_at": _iso(complaint.escalated_at),
        "analysis": {
            "sentiment": complaint.sentiment,
            "urgency": complaint.urgency_score,
            "complexity": complaint.complexity_score,
            "keywords": complaint.keywords,
            "tags": complaint.tags,
        },
        "version": complaint.version,
        "created_at": _iso(complaint.created_at),
        "updated_at": _iso(complaint.updated_at),
    }
    if include_events:
        data["events"] = [event_to_dict(event) for event in complaint.events.all()]
    return data


def tracking_to_dict(complaint):
    """Public view of a complaint for anyone holding its tracking code."""
    return {
        "tracking_code": complaint.tracking_code,
        "title": complaint.title,
        "category": complaint.category,
        "department": complaint.department.name if complaint.department_id else None,
        "priority": complaint.priority,
        "status": complaint.status,
        "status_display": complaint.get_status_display(),
        "created_at": _iso(complaint.created_at),
        "resolved_at": _iso(complaint.resolved_at),
        "timeline": [
            {"status": event.status, "timestamp": _iso(event.created_at)}
            for event in complaint.events.filter(kind="status_change")
        ],
    }


def classification_to_dict(analysis):
    return {
        "sentiment": analysis.sentiment,
        "urgency": analysis.urgency,
        "complexity": analysis.complexity,
        "suggested_department": analysis.suggested_department,
        "category": analysis.category,
        "priority": analysis.priority,
        "keywords": list(analysis.keywords),
        "tags": list(analysis.tags),
    }


def department_to_dict(department):
    return {
        "id": department.pk,
        "name": department.name,
        "slug": department.slug,
        "email": department.email,
    }


def member_to_dict(profile):
    return {
        "id": profile.user_id,
        "username": profile.user.username,
        "name": profile.user.get_full_name() or profile.user.username,
        "email": profile.user.email,
        "role": profile.role,
        "department_id": profile.department_id,
    }
