# src/chunkops/chunkserver/script.py

# format.sh <device> <mountpoint> <percent> <chunkfile_size> <filepool_dir> <filepool_meta_path>
FORMAT = r"""#!/usr/bin/env bash
set -e

device=$1
mountpoint=$2
percent=$3
chunkfile_size=$4
chunkfile_pool_dir=$5
chunkfile_pool_meta_path=$6

mkdir -p "$mountpoint"
if ! mountpoint -q "$mountpoint"; then
    mkfs.ext4 -F "$device"
    mount "$device" "$mountpoint"
fi

mkdir -p "$chunkfile_pool_dir"
/curvebs/tools/sbin/curve_format \
    -allocatePercent="$percent" \
    -fileSize="$chunkfile_size" \
    -filePoolDir="$chunkfile_pool_dir" \
    -filePoolMetaPath="$chunkfile_pool_meta_path" \
    -fileSystemPath="$chunkfile_pool_dir"
"""

# start_chunkserver.sh <device> <mountpoint> <conf path>
START = r"""#!/usr/bin/env bash
set -e

device=$1
mountpoint=$2
conf=$3

mkdir -p "$mountpoint"
if ! mountpoint -q "$mountpoint"; then
    mount "$device" "$mountpoint"
fi

exec /curvebs/chunkserver/sbin/curvebs-chunkserver -conf="$conf"
"""
