from taskmate.models.enums import ProjectRole

PERMS: dict[str, set[ProjectRole]] = {
    "projects:update": {ProjectRole.owner},
    "projects:delete": {ProjectRole.owner},

    "requests:list": {ProjectRole.owner},

    "messages:read": {ProjectRole.owner, ProjectRole.member},
    "messages:post": {ProjectRole.owner, ProjectRole.member},
    "chat:subscribe": {ProjectRole.owner, ProjectRole.member},
}
