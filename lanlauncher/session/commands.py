"""Command lines for the three ways of running the game."""

from lanlauncher.config import LauncherConfig
from lanlauncher.discovery.models import RemotePeer


def single_player_command(config: LauncherConfig) -> list[str]:
    argv = [config.zdoom, "-iwad", config.sp_wad]
    if config.sp_config:
        argv += ["-config", config.sp_config]
    return argv


def host_command(config: LauncherConfig, num_players: int) -> list[str]:
    argv = [
        config.zdoom,
        "-iwad", config.mp_wad,
        "-deathmatch",
        "+map", config.mp_map,
        "-host", str(num_players),
        "-port", str(config.port),
    ]
    if config.mp_config:
        argv += ["-config", config.mp_config]
    return argv


def join_command(config: LauncherConfig, host: RemotePeer) -> list[str]:
    # Hosts always advertise their wad; fall back to ours for older hosts
    argv = [
        config.zdoom,
        "-iwad", host.wad or config.mp_wad,
        "-join", host.connect_address,
        "-port", str(host.port),
    ]
    if config.mp_config:
        argv += ["-config", config.mp_config]
    return argv
