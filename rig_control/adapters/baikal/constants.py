"""
Baikal firmware constants
"""

MANUFACTURER = "Baikal"
VENDOR = "baikal"

MINER_START_CMD = "sudo systemctl start sgminer"
MINER_STOP_CMD = "sudo systemctl stop sgminer"
REBOOT_CMD = "sudo shutdown -r +{minutes}"

OPTIONS_PATH = "/opt/scripta/etc/miner.options.json"
POOLS_PATH = "/opt/scripta/etc/miner.pools.json"
CPU_TEMP_PATH = "/sys/class/thermal/thermal_zone0/temp"

STAT_COMMANDS = ('summary', 'devs', 'stats', 'pools')

# One fact per line so the reply decodes as key=value pairs.
SYSTEM_INFO_CMD = "; ".join([
    "echo hostname=$(hostname)",
    "echo mac_address=$(cat /sys/class/net/eth0/address)",
    "echo ip_address=$(ip -4 -o addr show eth0 | awk '{print $4}' | cut -d/ -f1)",
    "echo kernel_version=$(uname -r)",
    "echo filesystem_version=$(cat /opt/scripta/etc/version 2>/dev/null)",
    "echo product_type=$(cat /opt/scripta/etc/product_type 2>/dev/null)",
    "echo product_version=$(cat /opt/scripta/etc/product_version 2>/dev/null)",
    "echo uptime=$(cut -d' ' -f1 /proc/uptime)",
])

MAX_POOLS = 3

MODEL_ALGORITHMS = {
    "Mini Miner": ("x11", "x13", "x14", "x15", "quark", "qubit"),
    "Giant X10": ("x11", "x13", "x14", "x15", "quark", "qubit"),
    "Giant A900": ("x11", "x13", "x14", "x15", "quark", "qubit", "myriad-groestl", "skein", "nist5"),
    "Giant B": ("blake256r8", "blake256r14", "blake2b", "lbry", "pascal", "sia", "decred", "vanilla"),
    "Giant N": ("cryptonight", "cryptonight-lite"),
    "BK-X": ("x11", "x13", "x14", "x15", "quark", "qubit", "myriad-groestl", "skein", "nist5"),
    "BK-B": ("blake256r8", "blake256r14", "blake2b", "lbry", "pascal", "sia", "decred", "vanilla"),
    "BK-N": ("cryptonight", "cryptonight-lite"),
}

SUPPORTED_ALGORITHMS = frozenset(a for algos in MODEL_ALGORITHMS.values() for a in algos)
