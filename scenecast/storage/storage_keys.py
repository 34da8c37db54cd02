"""Object key conventions for durable storage"""


def project_prefix(user_id: str, project_id: str) -> str:
    return f"users/{user_id}/projects/{project_id}"


def scene_asset_key(user_id: str, project_id: str, scene_number: int, asset: str) -> str:
    """users/{user}/projects/{project}/scenes/scene-{n}/{asset}"""
    return f"{project_prefix(user_id, project_id)}/scenes/scene-{scene_number}/{asset}"


def scene_video_key(user_id: str, project_id: str, scene_number: int) -> str:
    return scene_asset_key(user_id, project_id, scene_number, "video.mp4")


def scene_audio_key(user_id: str, project_id: str, scene_number: int, extension: str = "wav") -> str:
    return scene_asset_key(user_id, project_id, scene_number, f"audio.{extension}")


def music_key(user_id: str, project_id: str) -> str:
    return f"{project_prefix(user_id, project_id)}/background-music.wav"


def final_video_key(user_id: str, project_id: str) -> str:
    return f"{project_prefix(user_id, project_id)}/final-video.mp4"


def thumbnail_key(user_id: str, project_id: str) -> str:
    return f"{project_prefix(user_id, project_id)}/thumbnail.jpg"
