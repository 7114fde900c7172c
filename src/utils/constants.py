# Configuration YT-DLP for downloading a single track to a local mp3
YTDL_DOWNLOAD_OPTIONS = {
    'format': 'bestaudio/best',
    'quiet': True,
    'no_warnings': True,
    'noplaylist': True,
    'nocheckcertificate': True,
    'no_color': True,
    'ignoreerrors': False,
    'postprocessors': [{
        'key': 'FFmpegExtractAudio',
        'preferredcodec': 'mp3',
        'preferredquality': '192',
    }],
}

# Every artifact is converted to this container
ARTIFACT_EXTENSION = 'mp3'
ARTIFACT_PREFIX = 'track-'

# Configuration FFMPEG for local files
FFMPEG_OPTIONS = {
    'before_options': '-nostdin',
    'options': '-vn -loglevel warning'
}

# Baseline gain applied to every track
DEFAULT_VOLUME = 1.0

# Seconds to wait for a voice connection to become ready
CONNECT_TIMEOUT = 30.0

COMMAND_PREFIX = '!'

LOOP_FLAG = '-l'
QUEUE_FLAG = '-q'

# Bot messages
MESSAGES = {
    'VOICE_CHANNEL_REQUIRED': "You must be in a voice channel to play music!",
    'MISSING_PERMISSIONS': "I don't have permission to join and speak in your voice channel!",
    'URL_REQUIRED': "Please provide a URL.",
    'JOIN_TIMEOUT': "Failed to join your voice channel in time.",
    'JOIN_FAILED': "I couldn't join your voice channel.",
    'DOWNLOADING': "Downloading track as MP3...",
    'DOWNLOADING_QUEUE': "Downloading track for the queue...",
    'DOWNLOAD_ERROR': "There was an error downloading the track.",
    'TRACK_QUEUED': "Track added to queue at position {position}.",
    'NOW_PLAYING': "Now playing: {url}",
    'LOOP_IGNORED': "`-l` is ignored when queueing with `-q`; the track will play once.",
    'QUEUE_EMPTY': "The queue is empty.",
    'QUEUE_HEADER': "Current Queue:",
    'QUEUE_BUSY': "A queue is already playing in this server. Use `-q` to add to it.",
    'COMMAND_ERROR': "Something went wrong while running that command.",
}
