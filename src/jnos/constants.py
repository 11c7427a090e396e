# Copyright (c) 2025-2026 provide.io llc
# SPDX-License-Identifier: AGPL-3.0-or-later

"""Shared constants for jnos."""

from __future__ import annotations

import re

# Wire text is treated as UTF-8; surrogateescape keeps undecodable bytes intact.
ENCODING = "utf-8"
ENCODING_ERRORS = "surrogateescape"

# Default timeouts (seconds)
DEFAULT_BBS_TIMEOUT_S = 5.0
DEFAULT_TNC_TIMEOUT_S = 0.5
DEFAULT_ECHO_TIMEOUT_S = 0.2
DEFAULT_RF_TIMEOUT_S = 60.0

# Self-identification must go out at least every ten minutes.
DEFAULT_IDENT_INTERVAL_S = 10 * 60 - 30

# Serial line settings for the KPC-3 Plus
DEFAULT_SERIAL_BAUD = 9600

# Simulator defaults
SIMULATOR_HOST = "127.0.0.1"
SIMULATOR_PORT = 63425

# Bytes handed from the telnet reader task to the consumer at once
READ_CHUNK_SIZE = 1024
READ_QUEUE_CHUNKS = 16

# --- JNOS command surface ---------------------------------------------------

PROMPT_RE = re.compile(r"^\(#\d+\) >$")

CMD_PAGING_OFF = "XM 0"
CMD_SEND_PRIVATE = "SP"
CMD_SEND_CC = "SC"
CMD_LIST_ALL = "LA"
CMD_LIST_UNREAD = "LM"
CMD_LIST_FROM = "L"
CMD_READ = "R"
CMD_READ_VERBOSE = "V"
CMD_KILL = "K"
CMD_AREA = "A"
CMD_BYE = "B\r"

CC_PROMPT = "Cc: "
SUBJECT_PROMPT = "Subject:\n"
ENTER_MESSAGE_BANNER = "Enter message.  End with /EX or ^Z in first column (^A aborts):\n"
END_OF_MESSAGE = "/EX"
MSG_QUEUED = "Msg queued\n"

LIST_AREA_PREFIX = "Mail area: "
LIST_COUNT_RE = re.compile(r"^(\d+) message(?:s)?  -  (\d+) new$")
LIST_NONE = "None to list."
LIST_HEADER = "St.  #  TO            FROM     DATE   SIZE SUBJECT"
LIST_ROW_RE = re.compile(
    r"^[> ]([D ])([HYN]) (  \d| \d\d|\d+) ([^ ].{12}) ([^ ].{7}) "
    r"((?:Jan|Feb|Mar|Apr|May|Jun|Jul|Aug|Sep|Oct|Nov|Dec) \d\d) "
    r"(   \d|  \d\d| \d\d\d|\d+) (.*)"
)
NEW_MAIL_NOTICE = "You have new mail."

READ_CONFIRM_RE = re.compile(r"^Message #\d+ (?:\[(?:Deleted|Held)\])?$")
READ_NOT_FOUND = ("Invalid Message", "No messages")

KILL_CONFIRM_RE = re.compile(r"^Msg \d+ Killed\.$")

NO_SUCH_AREA = "No such message area"

# --- Telnet login -----------------------------------------------------------

LOGIN_PROMPT = "login: "
PASSWORD_PROMPT_END = ": "
MD5_CHALLENGE_RE = re.compile(r"Password \[([0-9a-f]{1,8})\] : $")

# --- KPC-3 Plus TNC ---------------------------------------------------------

TNC_PROMPT = "cmd:"
TNC_DISCONNECTED = b"*** DISCONNECTED\r\n"
TNC_COMMAND_MODE = b"\x03"
TNC_RESYNC_ATTEMPTS = 3

TNC_PRE_CONNECT_COMMANDS: tuple[str, ...] = (
    "INTFACE TERMINAL",
    "CD SOFTWARE",
    "NEWMODE ON",
    "8BITCONV ON",
    "BEACON EVERY 0",
    "SLOTTIME 10",
    "PERSIST 63",
    "PACLEN 128",
    "MAXFRAME 2",
    "FRACK 6",
    "RETRY 8",
    "CHECK 30",
    "TXDELAY 40",
    "XFLOW OFF",
    "SENDPAC $05",
    "CR OFF",
    "PACTIME AFTER 2",
    "CPACTIME ON",
    "STREAMEV OFF",
    "STREAMSW $00",
    "UNPROTO IDENT",
    "MONITOR ON",
)

TNC_POST_DISCONNECT_COMMANDS: tuple[str, ...] = (
    "SENDPAC $0D",
    "CR ON",
    "PACTIME AFTER 10",
    "CPACTIME OFF",
    "STREAMSW $7C",
    "UNPROTO CQ",
)

# AX.25 address (call sign with SSID) and bare FCC call sign
AX25_ADDRESS_RE = re.compile(r"(?i)^(?:A[A-L]|[KNW][A-Z]?)[0-9][A-Z]{1,3}-(?:[0-9]|1[0-5])$")
FCC_CALLSIGN_RE = re.compile(r"(?i)^(?:A[A-L]|[KNW][A-Z]?)[0-9][A-Z]{1,3}$")
